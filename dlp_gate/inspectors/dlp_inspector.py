"""Google Cloud DLP content inspector."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import dlp_v2

from dlp_gate.core.errors import InspectionUnavailableError
from dlp_gate.core.interfaces import ContentInspector, Finding, InspectionPolicy, Likelihood

logger = logging.getLogger(__name__)

# inspect_content rejects items larger than 0.5 MB
MAX_REQUEST_BYTES = 500_000
# shared between consecutive requests so a match crossing a boundary is seen whole
CHUNK_OVERLAP = 4096


def _chunks(text: str, max_bytes: int, overlap: int = CHUNK_OVERLAP) -> Iterator[Tuple[int, str]]:
    """Split text into windows whose UTF-8 encoding fits in max_bytes.

    Yields ``(shared, window)`` where ``shared`` is the number of leading
    characters the window has in common with the previous one.
    """
    if len(text.encode("utf-8")) <= max_bytes:
        yield 0, text
        return

    start, shared = 0, 0
    while start < len(text):
        encoded = text[start:start + max_bytes].encode("utf-8")[:max_bytes]
        window = encoded.decode("utf-8", errors="ignore") or text[start]
        yield shared, window
        end = start + len(window)
        if end >= len(text):
            return
        shared = min(overlap, len(window) // 2)
        start = end - shared


def _end_offset(raw: Any) -> Optional[int]:
    codepoint_range = getattr(getattr(raw, "location", None), "codepoint_range", None)
    # unset proto fields read as 0
    return getattr(codepoint_range, "end", None) or None


def _likelihood(raw: Any) -> Likelihood:
    try:
        return Likelihood.coerce(raw)
    except ValueError:
        # LIKELIHOOD_UNSPECIFIED still counts as a finding
        return Likelihood.POSSIBLE


class CloudDlpInspector(ContentInspector):
    """Sends content to the Cloud DLP inspect_content API."""

    def __init__(self,
                 project_id: str,
                 location: str = "global",
                 timeout: float = 120.0,
                 client: Optional[Any] = None,
                 max_request_bytes: int = MAX_REQUEST_BYTES,
                 chunk_overlap: int = CHUNK_OVERLAP):
        self.project_id = project_id
        self.location = location
        self.timeout = timeout
        self.max_request_bytes = max_request_bytes
        self.chunk_overlap = chunk_overlap
        self._client = client

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}"

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = dlp_v2.DlpServiceClient()
            except auth_exceptions.GoogleAuthError as e:
                raise InspectionUnavailableError(f"Cannot create DLP client: {e}") from e
        return self._client

    def build_inspect_config(self, policy: InspectionPolicy) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "info_types": [{"name": name} for name in policy.info_types],
            "min_likelihood": policy.min_likelihood.name,
            "include_quote": policy.include_quote,
        }
        if policy.custom_detectors:
            config["custom_info_types"] = [
                {
                    "info_type": {"name": detector.name},
                    "regex": {"pattern": detector.pattern},
                    "likelihood": detector.likelihood.name,
                }
                for detector in policy.custom_detectors
            ]
        return config

    def inspect(self, text: str, policy: InspectionPolicy) -> List[Finding]:
        inspect_config = self.build_inspect_config(policy)
        findings: List[Finding] = []

        for shared, chunk in _chunks(text, self.max_request_bytes, self.chunk_overlap):
            request = {
                "parent": self.parent,
                "inspect_config": inspect_config,
                "item": {"value": chunk},
            }
            try:
                response = self.client.inspect_content(request=request, timeout=self.timeout)
            except (api_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
                logger.error(f"DLP inspection failed: {e}")
                raise InspectionUnavailableError(f"DLP inspection failed: {e}") from e

            for raw in response.result.findings:
                end = _end_offset(raw)
                if shared and end is not None and end <= shared:
                    # already reported by the previous window
                    continue
                findings.append(Finding(
                    info_type=raw.info_type.name,
                    likelihood=_likelihood(raw.likelihood),
                    quote=raw.quote or None,
                ))

        for finding in findings:
            logger.info(f"Found sensitive data: {finding.info_type} ({finding.likelihood.name})")
        return findings
