"""Runtime support for generated MAVLink dialect modules."""

from .crc import fold_crc as fold_crc
from .crc import x25crc as x25crc
from .enums import MavBitmask as MavBitmask
from .enums import MavEnum as MavEnum
from .errors import DecodeError as DecodeError
from .errors import EncodeError as EncodeError
from .errors import SpecError as SpecError
from .errors import UnknownEnumValueError as UnknownEnumValueError
from .message import MavFieldInfo as MavFieldInfo
from .message import MavMessage as MavMessage
from .message import mav_field as mav_field
from .message import pack_array as pack_array
from .message import pack_chars as pack_chars
from .message import reinterpret as reinterpret
from .payload import MavLinkVersion as MavLinkVersion
from .payload import Payload as Payload
