"""
TaxonomyEntry model.

A TaxonomyEntry is one species row from the taxonomy source, carrying the
Latin binomial (the unique key), its names in other languages and its
Order/Family/Genus lineage.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class TaxonomyEntry:
    """
    One known species.

    Attributes:
        latin_name: Binomial "Genus species", unique across a table
        common_name: Preferred vernacular name, may be empty
        order: Order name (e.g., "Passeriformes")
        family: Family name (e.g., "Turdidae")
        genus: Genus name, always equal to the first token of latin_name
        alternate_names: Vernacular names from other language columns
    """
    latin_name: str
    common_name: str
    order: str
    family: str
    genus: str
    alternate_names: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def epithet(self) -> str:
        """The species epithet, i.e. the second token of the binomial."""
        return self.latin_name.split()[1]

    @property
    def all_common_names(self) -> Tuple[str, ...]:
        """The preferred common name followed by alternates, empties dropped."""
        names = (self.common_name,) + tuple(self.alternate_names)
        return tuple(name for name in names if name)

    def to_dict(self) -> dict:
        """Convert to dictionary for pandas DataFrame."""
        return {
            "latin_name": self.latin_name,
            "common_name": self.common_name,
            "order": self.order,
            "family": self.family,
            "genus": self.genus,
            "alternate_names": list(self.alternate_names),
        }
