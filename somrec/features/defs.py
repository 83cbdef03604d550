"""
Registry of known analysis features and their fixed dimensionality.

Feature names are dotted paths into low-level audio analysis documents
(e.g. ``lowlevel.gfcc.mean``). The dimension of each feature is known up
front and never inferred from the data.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..types import FeatureDef, FeatureSettings, FeatureSettingsMap

FEATURE_DEFS: dict[str, FeatureDef] = {
    "lowlevel.average_loudness": FeatureDef(1),
    "lowlevel.barkbands.mean": FeatureDef(27),
    "lowlevel.dynamic_complexity": FeatureDef(1),
    "lowlevel.erbbands.mean": FeatureDef(40),
    "lowlevel.gfcc.mean": FeatureDef(13),
    "lowlevel.melbands.mean": FeatureDef(40),
    "lowlevel.mfcc.mean": FeatureDef(13),
    "lowlevel.spectral_centroid.mean": FeatureDef(1),
    "lowlevel.spectral_contrast_coeffs.mean": FeatureDef(6),
    "lowlevel.spectral_contrast_valleys.var": FeatureDef(6),
    "lowlevel.spectral_energyband_high.mean": FeatureDef(1),
    "lowlevel.spectral_energyband_low.mean": FeatureDef(1),
    "lowlevel.spectral_flux.mean": FeatureDef(1),
    "lowlevel.spectral_rolloff.median": FeatureDef(1),
    "lowlevel.zerocrossingrate.mean": FeatureDef(1),
    "rhythm.bpm": FeatureDef(1),
    "rhythm.danceability": FeatureDef(1),
    "tonal.hpcp.mean": FeatureDef(36),
}

DEFAULT_TRAIN_FEATURE_SETTINGS: FeatureSettingsMap = {
    "lowlevel.spectral_energyband_high.mean": FeatureSettings(1.0),
    "lowlevel.spectral_rolloff.median": FeatureSettings(1.0),
    "lowlevel.spectral_contrast_valleys.var": FeatureSettings(1.0),
    "lowlevel.erbbands.mean": FeatureSettings(1.0),
    "lowlevel.gfcc.mean": FeatureSettings(1.0),
}


def get_feature_def(feature_name: str, registry: dict[str, FeatureDef] | None = None) -> FeatureDef:
    """Look up a feature definition; unknown names are a programming error."""
    defs = FEATURE_DEFS if registry is None else registry
    try:
        return defs[feature_name]
    except KeyError as exc:
        raise ValueError(f"Unknown feature: {feature_name!r}") from exc


def ordered_feature_names(feature_names: Iterable[str]) -> list[str]:
    """Stable concatenation order used for every vector and weight layout."""
    return sorted(set(feature_names))
