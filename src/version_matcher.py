"""
Version label comparison.

Rules, checked in order:
    no input version          candidate explicitly standard -> 0.8, anything else -> 0.5
    no candidate version      neutral 0.5
    mutually exclusive pair   0   ("蓝牙版" vs "eSIM版"), even when one label contains the other
    equal or substring        1.0 (case-insensitive)
    compatible network label  0.95 ("全网通5G" vs "5G")
    otherwise                 0
"""

from typing import Any, Dict, Optional, Sequence

from dictionaries import MatcherConfig, ScoringConstants, default_config

MATCH_TYPE_EXACT = 'exact'
MATCH_TYPE_COMPATIBLE = 'compatible'
MATCH_TYPE_DEFAULT = 'default'
MATCH_TYPE_MISMATCH = 'mismatch'


def _label(version: Any) -> Optional[str]:
    """Accept a VersionKeyword row or a plain label."""
    if version is None:
        return None
    name = getattr(version, 'name', version)
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()


def is_standard_version(label: Optional[str], markers: Sequence[str]) -> bool:
    return bool(label) and any(marker in label for marker in markers)


class VersionMatcher:

    def __init__(self, config: Optional[MatcherConfig] = None, scoring: Optional[ScoringConstants] = None):
        self.config = config or default_config()
        self.scoring = scoring or self.config.scoring
        self._exclusive = {frozenset((a.lower(), b.lower()))
                           for a, b in self.config.mutually_exclusive_versions}
        self._compatible = set()
        for label, compatible in self.config.version_compatibility.items():
            for other in compatible:
                self._compatible.add(frozenset((label.lower(), other.lower())))

    def _result(self, matched: bool, score: float, match_type: str, explanation: str) -> Dict[str, Any]:
        return {'matched': matched, 'score': score, 'match_type': match_type, 'explanation': explanation}

    def match(self, input_version: Any, candidate_version: Any) -> Dict[str, Any]:
        s = self.scoring
        wanted = _label(input_version)
        offered = _label(candidate_version)

        if wanted is None:
            if is_standard_version(offered, self.config.standard_version_markers):
                return self._result(True, s.VERSION_STANDARD_DEFAULT, MATCH_TYPE_DEFAULT,
                                    f"no input version, standard candidate '{offered}'")
            return self._result(True, s.VERSION_NEUTRAL, MATCH_TYPE_DEFAULT, 'no input version')

        if offered is None:
            return self._result(True, s.VERSION_NEUTRAL, MATCH_TYPE_DEFAULT,
                                f"input version '{wanted}', candidate has none")

        a, b = wanted.lower(), offered.lower()
        if frozenset((a, b)) in self._exclusive:
            return self._result(False, 0.0, MATCH_TYPE_MISMATCH, f"'{wanted}' excludes '{offered}'")
        if a == b or a in b or b in a:
            return self._result(True, s.VERSION_EXACT, MATCH_TYPE_EXACT, f"'{wanted}' matches '{offered}'")
        if frozenset((a, b)) in self._compatible:
            return self._result(True, s.VERSION_COMPATIBLE, MATCH_TYPE_COMPATIBLE,
                                f"'{wanted}' compatible with '{offered}'")
        return self._result(False, 0.0, MATCH_TYPE_MISMATCH, f"'{wanted}' does not match '{offered}'")
