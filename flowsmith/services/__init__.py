"""Services for the flowsmith artifact pipeline."""

from flowsmith.services.change_ledger import ChangeLedger
from flowsmith.services.compiler import CompileBatch, CompiledDocument, ContentCompiler
from flowsmith.services.contract_validator import ContractValidator
from flowsmith.services.deployer import Deployer
from flowsmith.services.externalizer import ContentExternalizer, ExtractionResult
from flowsmith.services.structural_validator import StructuralValidator

__all__ = [
    "ChangeLedger",
    "CompileBatch",
    "CompiledDocument",
    "ContentCompiler",
    "ContentExternalizer",
    "ContractValidator",
    "Deployer",
    "ExtractionResult",
    "StructuralValidator",
]
