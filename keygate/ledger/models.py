"""Usage ledger entries and their typed metadata."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, Type

from keygate.plans.config import ExportFormat, OperationKind, PriceClass


@dataclass(frozen=True)
class UsageMetadata:
    """Fields common to every metadata variant."""

    kind: ClassVar[OperationKind]

    origin_address: Optional[str] = None
    credential_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in asdict(self).items()}
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class CallMetadata(UsageMetadata):
    kind: ClassVar[OperationKind] = OperationKind.API_CALL

    endpoint: str = ""
    method: str = "GET"


@dataclass(frozen=True)
class PredictionMetadata(UsageMetadata):
    kind: ClassVar[OperationKind] = OperationKind.PREDICTION

    symbol: Optional[str] = None
    price_class: PriceClass = PriceClass.BASIC


@dataclass(frozen=True)
class ExportMetadata(UsageMetadata):
    kind: ClassVar[OperationKind] = OperationKind.EXPORT

    export_format: ExportFormat = ExportFormat.CSV
    size: int = 0


METADATA_TYPES: Dict[OperationKind, Type[UsageMetadata]] = {
    OperationKind.API_CALL: CallMetadata,
    OperationKind.PREDICTION: PredictionMetadata,
    OperationKind.EXPORT: ExportMetadata,
}


def default_metadata(kind: OperationKind, **fields: Any) -> UsageMetadata:
    """Build the metadata variant for ``kind``."""
    return METADATA_TYPES[OperationKind(kind)](**fields)


def metadata_from_dict(data: Dict[str, Any]) -> UsageMetadata:
    """Rebuild a metadata variant from its ``to_dict`` form."""
    data = dict(data)
    kind = OperationKind(data.pop("kind"))
    if "price_class" in data and data["price_class"] is not None:
        data["price_class"] = PriceClass(data["price_class"])
    if "export_format" in data and data["export_format"] is not None:
        data["export_format"] = ExportFormat(data["export_format"])
    return METADATA_TYPES[kind](**data)


@dataclass(frozen=True)
class LedgerEntry:
    """One metered operation. Entries are never modified once appended."""

    entry_id: str
    account_id: str
    kind: OperationKind
    quantity: int
    unit_price: float
    cost: float
    metadata: UsageMetadata
    timestamp: datetime = field(compare=False)

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")
        if self.metadata.kind != self.kind:
            raise ValueError(
                f"{type(self.metadata).__name__} does not describe a {self.kind.value} entry"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "account_id": self.account_id,
            "kind": self.kind.value,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "cost": self.cost,
            "metadata": self.metadata.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }
