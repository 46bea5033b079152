"""MAVLink dialect code generator."""

from .builder import FingerprintCache as FingerprintCache
from .builder import GenerationResult as GenerationResult
from .builder import Generator as Generator
from .config import GeneratorConfig as GeneratorConfig
from .config import SelectionConfig as SelectionConfig
from .errors import *
from .layout import MessageLayout as MessageLayout
from .layout import crc_extra as crc_extra
from .layout import plan_layout as plan_layout
from .layout import wire_order as wire_order
from .naming import DialectNames as DialectNames
from .parser import DefinitionLoader as DefinitionLoader
from .parser import parse as parse
from .parser import parse_type as parse_type
from .python import render_dialect as render_dialect
from .python import render_index as render_index
from .typemap import ResolvedType as ResolvedType
from .typemap import TypeMapper as TypeMapper
from .types import *
