# Net package
from .transport import Transport, TransportMode, create_ssl_context, USER_AGENT
