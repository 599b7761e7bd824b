"""Configuration analysis: live field vs desired configuration.

Pure and synchronous. Produces an itemized, severity-tagged diff, a match
score in ``[0, 1]`` and a recommended action.

Scoring::

    match_score = max(0, 1 - (critical * 0.8 + minor * 0.2) / 5)

Every difference lowers the score, a critical one four times as much as a
minor one, and the score saturates at 0.

Property comparison walks only the keys the desired side declares. Inside
nested mappings, keys the remote adds on its own (option ``id`` and
``color``, for instance) are ignored unless the desired side pins them;
lists must have the same length and match element by element.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fieldsync.models import (
    ConfigurationDifference,
    FieldConfiguration,
    FieldDescriptor,
    MatchAnalysis,
    RecommendedAction,
    Severity,
)

# Sub-properties that define what the field *is* rather than how it looks.
CRITICAL_PROPERTIES = frozenset({"options", "min", "max", "rating"})

CRITICAL_WEIGHT = 0.8
MINOR_WEIGHT = 0.2
SCORE_NORMALIZATION = 5.0


def values_match(live: Any, desired: Any) -> bool:
    """Deep comparison of a live value against a desired one."""
    if isinstance(desired, Mapping):
        if not isinstance(live, Mapping):
            return False
        return all(values_match(live.get(key), value) for key, value in desired.items())
    if isinstance(desired, Sequence) and not isinstance(desired, (str, bytes)):
        if not isinstance(live, Sequence) or isinstance(live, (str, bytes)):
            return False
        if len(live) != len(desired):
            return False
        return all(values_match(lv, dv) for lv, dv in zip(live, desired))
    if isinstance(desired, bool) or isinstance(live, bool):
        return live is desired
    return live == desired


def property_severity(key: str) -> Severity:
    return Severity.CRITICAL if key in CRITICAL_PROPERTIES else Severity.MINOR


def compare_properties(
    live: Mapping[str, Any],
    desired: Mapping[str, Any],
) -> list[ConfigurationDifference]:
    """Diff the desired property map against the live one, key by key."""
    differences = []
    for key, desired_value in desired.items():
        live_value = live.get(key)
        if values_match(live_value, desired_value):
            continue
        differences.append(
            ConfigurationDifference(
                property=f"property.{key}",
                from_value=live_value,
                to_value=desired_value,
                severity=property_severity(key),
                description=(
                    f"property '{key}' is missing on the live field"
                    if key not in live
                    else f"property '{key}' differs"
                ),
            )
        )
    return differences


def score(differences: Sequence[ConfigurationDifference]) -> float:
    critical = sum(1 for d in differences if d.severity is Severity.CRITICAL)
    minor = len(differences) - critical
    penalty = (critical * CRITICAL_WEIGHT + minor * MINOR_WEIGHT) / SCORE_NORMALIZATION
    return max(0.0, 1.0 - penalty)


def recommend(differences: Sequence[ConfigurationDifference]) -> RecommendedAction:
    if not differences:
        return RecommendedAction.NO_ACTION
    if any(d.severity is Severity.CRITICAL for d in differences):
        return RecommendedAction.RECREATE_FIELD
    return RecommendedAction.UPDATE_FIELD


def analyze_configuration(
    live: FieldDescriptor,
    desired: FieldConfiguration,
) -> MatchAnalysis:
    """Compare a live field against its desired configuration."""
    differences: list[ConfigurationDifference] = []

    if live.type_code != desired.type_code:
        differences.append(
            ConfigurationDifference(
                property="type",
                from_value=live.type_code,
                to_value=desired.type_code,
                severity=Severity.CRITICAL,
                description=f"field type changes from {live.type_code} to {desired.type_code}",
            )
        )

    if live.ui_type != desired.ui_type:
        differences.append(
            ConfigurationDifference(
                property="ui_type",
                from_value=live.ui_type,
                to_value=desired.ui_type,
                severity=Severity.CRITICAL,
                description=f"ui type changes from {live.ui_type!r} to {desired.ui_type!r}",
            )
        )

    if desired.properties:
        differences.extend(compare_properties(live.properties, desired.properties))

    if desired.description is not None:
        live_text = (live.description or "").strip()
        desired_text = desired.description.strip()
        if live_text != desired_text:
            differences.append(
                ConfigurationDifference(
                    property="description",
                    from_value=live.description,
                    to_value=desired.description,
                    severity=Severity.MINOR,
                    description="description text differs",
                )
            )

    return MatchAnalysis(
        is_full_match=not differences,
        differences=differences,
        match_score=score(differences),
        recommended_action=recommend(differences),
    )


class ConfigurationAnalyzer:
    """Object form of :func:`analyze_configuration` for injection into the engine."""

    def analyze(self, live: FieldDescriptor, desired: FieldConfiguration) -> MatchAnalysis:
        return analyze_configuration(live, desired)


__all__ = [
    "CRITICAL_PROPERTIES",
    "ConfigurationAnalyzer",
    "analyze_configuration",
    "compare_properties",
    "values_match",
    "score",
    "recommend",
]
