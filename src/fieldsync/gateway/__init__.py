"""Remote field API gateways."""

from fieldsync.gateway.base import RemoteFieldGateway
from fieldsync.gateway.bitable import BitableFieldGateway
from fieldsync.gateway.memory import InMemoryFieldGateway

__all__ = ["RemoteFieldGateway", "BitableFieldGateway", "InMemoryFieldGateway"]
