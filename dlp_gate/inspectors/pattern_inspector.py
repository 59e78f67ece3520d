"""Offline regex-based content inspector."""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from dlp_gate.core.errors import ConfigurationError
from dlp_gate.core.interfaces import (
    ContentInspector,
    CustomDetector,
    Finding,
    InspectionPolicy,
    Likelihood,
)

logger = logging.getLogger(__name__)


def _luhn_valid(candidate: str) -> bool:
    digits = [int(c) for c in candidate if c.isdigit()]
    if not 13 <= len(digits) <= 19:
        return False
    checksum = 0
    for i, digit in enumerate(reversed(digits)):
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        checksum += digit
    return checksum % 10 == 0


def _ssn_valid(candidate: str) -> bool:
    area, group, serial = re.split(r"[-\s]", candidate)
    if area in ("000", "666") or area.startswith("9"):
        return False
    return group != "00" and serial != "0000"


@dataclass(frozen=True)
class PatternDetector:
    """A compiled detector for one info type."""
    info_type: str
    regex: Pattern
    likelihood: Likelihood
    validator: Optional[Callable[[str], bool]] = None

    def scan(self, text: str) -> List[Finding]:
        findings = []
        for match in self.regex.finditer(text):
            quote = match.group(0)
            if self.validator and not self.validator(quote):
                continue
            findings.append(Finding(info_type=self.info_type, likelihood=self.likelihood, quote=quote))
        return findings


BUILTIN_DETECTORS: Dict[str, PatternDetector] = {
    "EMAIL_ADDRESS": PatternDetector(
        info_type="EMAIL_ADDRESS",
        regex=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        likelihood=Likelihood.LIKELY,
    ),
    "PHONE_NUMBER": PatternDetector(
        info_type="PHONE_NUMBER",
        regex=re.compile(
            r"(?<![\d-])(?:\+?1[\s.-]?)?(?:\(\d{3}\)|\d{3})[\s.-]?\d{3}[\s.-]\d{4}(?![\d-])"
        ),
        likelihood=Likelihood.POSSIBLE,
    ),
    "US_SOCIAL_SECURITY_NUMBER": PatternDetector(
        info_type="US_SOCIAL_SECURITY_NUMBER",
        regex=re.compile(r"(?<![\d-])\d{3}[-\s]\d{2}[-\s]\d{4}(?![\d-])"),
        likelihood=Likelihood.LIKELY,
        validator=_ssn_valid,
    ),
    "CREDIT_CARD_NUMBER": PatternDetector(
        info_type="CREDIT_CARD_NUMBER",
        regex=re.compile(r"(?<![\d-])(?:\d[ -]?){12,18}\d(?![\d-])"),
        likelihood=Likelihood.VERY_LIKELY,
        validator=_luhn_valid,
    ),
}


class PatternInspector(ContentInspector):
    """Local inspector covering the default info types plus custom detectors."""

    def __init__(self):
        self._compiled: Dict[Tuple[str, str], PatternDetector] = {}

    def _custom_detector(self, detector: CustomDetector) -> PatternDetector:
        key = (detector.name, detector.pattern)
        compiled = self._compiled.get(key)
        if compiled is None:
            try:
                regex = re.compile(detector.pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid pattern for detector {detector.name}: {e}")
            compiled = PatternDetector(info_type=detector.name, regex=regex, likelihood=detector.likelihood)
            self._compiled[key] = compiled
        return compiled

    def detectors_for(self, policy: InspectionPolicy) -> List[PatternDetector]:
        unsupported = [name for name in policy.info_types if name not in BUILTIN_DETECTORS]
        if unsupported:
            raise ConfigurationError(
                f"Pattern inspector has no detector for: {', '.join(unsupported)}",
                hint="Remove these info types or use the 'dlp' inspector",
            )
        detectors = [BUILTIN_DETECTORS[name] for name in policy.info_types]
        detectors.extend(self._custom_detector(d) for d in policy.custom_detectors)
        return detectors

    def inspect(self, text: str, policy: InspectionPolicy) -> List[Finding]:
        findings = []
        for detector in self.detectors_for(policy):
            if detector.likelihood < policy.min_likelihood:
                continue
            findings.extend(detector.scan(text))

        if not policy.include_quote:
            findings = [Finding(info_type=f.info_type, likelihood=f.likelihood) for f in findings]

        logger.debug(f"Pattern inspection produced {len(findings)} findings")
        return findings
