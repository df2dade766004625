"""
Feature domains and the feature space.

A feature domain is a named, disjoint group of predictors sharing a semantic
origin (demographics, laboratory results, echocardiography, ...). Domains are
declared statically in configuration as a name-prefix rule or an explicit
feature list and resolved once against the dataset columns, failing fast when a
column would belong to two domains.
"""

import logging
from dataclasses import dataclass, field

from hf_ml.config.schema import DomainSpec
from hf_ml.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeatureDomain:
    """A named group of feature columns."""

    name: str
    features: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.features)


@dataclass(frozen=True)
class FeatureSpace:
    """
    Feature columns partitioned into non-overlapping domains.

    Attributes:
        domains: Domains in declared (priority) order
        unassigned: Columns that matched no domain and were left out
    """

    domains: tuple[FeatureDomain, ...]
    unassigned: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        seen: dict[str, str] = {}
        for domain in self.domains:
            for feature in domain.features:
                if feature in seen:
                    raise ConfigurationError(
                        f"Feature '{feature}' belongs to both '{seen[feature]}' "
                        f"and '{domain.name}'"
                    )
                seen[feature] = domain.name

    @property
    def features(self) -> list[str]:
        """All features, grouped by domain in declared order."""
        return [f for d in self.domains for f in d.features]

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.domains]

    def domain(self, name: str) -> FeatureDomain:
        for d in self.domains:
            if d.name == name:
                return d
        raise KeyError(f"Unknown feature domain: {name}")

    @classmethod
    def resolve(
        cls,
        columns: list[str],
        specs: list[DomainSpec],
        exclude: list[str] | None = None,
        unassigned: str = "error",
    ) -> "FeatureSpace":
        """
        Resolve declared domain matchers against dataset columns.

        Args:
            columns: Dataset column names (order preserved within each domain)
            specs: Domain declarations in priority order
            exclude: Columns never treated as features (outcome labels, IDs)
            unassigned: "error" to reject columns matching no domain, "ignore" to drop them

        Returns:
            FeatureSpace over the matched columns

        Raises:
            ConfigurationError: On overlapping domains, domains matching no column,
                or unassigned columns under the "error" policy
        """
        excluded = set(exclude or [])
        candidates = [c for c in columns if c not in excluded]

        owner: dict[str, str] = {}
        members: dict[str, list[str]] = {spec.name: [] for spec in specs}
        for col in candidates:
            for spec in specs:
                if not spec.matches(col):
                    continue
                if col in owner:
                    raise ConfigurationError(
                        f"Column '{col}' matches domains '{owner[col]}' and '{spec.name}'; "
                        "feature domains must be disjoint"
                    )
                owner[col] = spec.name
                members[spec.name].append(col)

        if any(spec.features is not None for spec in specs):
            available = set(candidates)
            for spec in specs:
                if spec.features is None:
                    continue
                missing = sorted(set(spec.features) - available)
                if missing:
                    raise ConfigurationError(
                        f"Domain '{spec.name}' lists features missing from the data: {missing}"
                    )

        empty = [name for name, cols in members.items() if not cols]
        if empty:
            raise ConfigurationError(f"Feature domains matched no columns: {empty}")

        leftover = tuple(c for c in candidates if c not in owner)
        if leftover:
            if unassigned == "error":
                raise ConfigurationError(
                    f"{len(leftover)} column(s) match no feature domain: {list(leftover[:10])}"
                )
            logger.warning(
                f"Ignoring {len(leftover)} column(s) that match no feature domain: "
                f"{list(leftover[:10])}"
            )

        domains = tuple(FeatureDomain(spec.name, tuple(members[spec.name])) for spec in specs)
        for d in domains:
            logger.debug(f"Domain {d.name}: {len(d)} features")
        return cls(domains=domains, unassigned=leftover)
