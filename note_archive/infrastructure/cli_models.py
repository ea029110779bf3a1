"""
Pydantic models for validating command-line arguments.

These models serve as a strict contract for raw user input, ensuring that
out-of-domain values are caught at the infrastructure layer before being
mapped to domain objects and passed to the application core.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..application.domain import BatchJob
from ..application.exceptions import InvalidConfigurationError
from ..application.notes import Alphabet, Note, parse_notes

ModelT = TypeVar("ModelT", bound=BaseModel)


class _SequenceArguments(BaseModel):
    """Arguments that name one explicit note sequence."""

    notes: str

    def sequence(self) -> Tuple[Note, ...]:
        return parse_notes(self.notes)


class SingleArguments(_SequenceArguments):
    """Arguments of the 'single' directive."""

    target: Path


class PartitionArguments(_SequenceArguments):
    """Arguments of the 'partition' directive."""

    partition_depth: int = Field(ge=0)
    max_files: float = Field(gt=0)
    root: Path = Path(".")


class BatchArguments(BaseModel):
    """
    Arguments of the 'batch' directive.

    Optional values left as None on the command line are filled from
    settings before validation.
    """

    notes: str
    length: int = Field(ge=1)
    target: Path
    partition_depth: int = Field(ge=0)
    batch_size: int = Field(ge=1)
    max_files: float = Field(gt=0)
    count: Optional[int] = Field(default=None, ge=1)
    start: int = Field(default=0, ge=0)
    update: int = Field(default=1000, gt=0)
    enforce_min_length: bool = True

    def to_domain(self) -> BatchJob:
        """Maps the validated arguments to a domain BatchJob."""
        alphabet = Alphabet.parse(self.notes)
        return BatchJob(
            alphabet=alphabet,
            length=self.length,
            target=self.target,
            partition_depth=self.partition_depth,
            batch_size=self.batch_size,
            max_files=self.max_files,
            count=self.count,
            start=self.start,
            min_length=len(alphabet) if self.enforce_min_length else None,
            progress_interval=self.update / 1000,
        )


def validate_arguments(model: Type[ModelT], values: Dict[str, Any]) -> ModelT:
    """
    Validates raw values against a model. Keys the model does not define
    and values left as None are dropped, so model defaults apply.

    Raises:
        InvalidConfigurationError: If any value is missing or out of domain.
    """
    fields = {
        key: value for key, value in values.items()
        if key in model.model_fields and value is not None
    }
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidConfigurationError(
            f"Invalid {model.__name__}: {problems}"
        ) from e
