"""
Query filters for information tables, rows and change requests.

Each filter kind is a small frozen dataclass; apply_filters() turns a list of
them into SQLAlchemy predicates for a given model. A kind the model has no
column for is a ValidationError instead of being silently ignored.
"""
from dataclasses import dataclass
from typing import Iterable, Union

from information.models import Information, InformationRow, ChangeRequest, REQUEST_STATUSES
from utils.errors import ValidationError


@dataclass(frozen=True)
class ByInformation:
    information_id: int


@dataclass(frozen=True)
class ByRow:
    row_id: int


@dataclass(frozen=True)
class ByStatus:
    status: str

    def __post_init__(self):
        if self.status not in REQUEST_STATUSES:
            raise ValidationError(
                f"Invalid status '{self.status}'", errors={"allowed": list(REQUEST_STATUSES)}
            )


@dataclass(frozen=True)
class ByRequester:
    user_id: int


@dataclass(frozen=True)
class ActiveOnly:
    pass


Filter = Union[ByInformation, ByRow, ByStatus, ByRequester, ActiveOnly]

# filter kind -> model -> predicate builder
_PREDICATES = {
    ByInformation: {
        InformationRow: lambda f: InformationRow.information_id == f.information_id,
        ChangeRequest: lambda f: ChangeRequest.information_id == f.information_id,
        Information: lambda f: Information.id == f.information_id,
    },
    ByRow: {
        InformationRow: lambda f: InformationRow.id == f.row_id,
        ChangeRequest: lambda f: ChangeRequest.row_id == f.row_id,
    },
    ByStatus: {
        ChangeRequest: lambda f: ChangeRequest.status == f.status,
    },
    ByRequester: {
        ChangeRequest: lambda f: ChangeRequest.requested_by == f.user_id,
    },
    ActiveOnly: {
        Information: lambda f: Information.active.is_(True),
    },
}


def predicate_for(model, f: Filter):
    builders = _PREDICATES.get(type(f))
    if builders is None or model not in builders:
        raise ValidationError(f"{type(f).__name__} cannot filter {model.__name__}")
    return builders[model](f)


def apply_filters(query, model, filters: Iterable[Filter]):
    for f in filters:
        query = query.filter(predicate_for(model, f))
    return query


def parse_int(value, name):
    """Query-string helper: None for absent values, ValidationError for garbage."""
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
