from .assembler import CompiledRequest, RequestAssembler, assembler
from .base import BaseWhere
from .clauses import ElasticsearchWhereCompiler, es_where
from .context import CompilationContext
from .keywords import KeywordResolver
from .options import OptionCompiler, option_compiler

__all__ = (
    "BaseWhere",
    "CompilationContext",
    "CompiledRequest",
    "ElasticsearchWhereCompiler",
    "es_where",
    "KeywordResolver",
    "OptionCompiler",
    "option_compiler",
    "RequestAssembler",
    "assembler",
)
