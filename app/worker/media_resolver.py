"""
Media Resolver

Finds a fetchable media url for a post. The external host exposes the same
identifier under several url shapes (video, poster frame, static image) and
only some of them exist for a given post, so each shape is probed in a fixed
order and the first one that answers wins.

Every resolution walks a finite list of candidates and probes each one at
most once, so two shapes that both fail can never bounce back and forth.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Set

import requests

from ..config import MediaForm, get_settings
from ..identifiers import extract
from ..logging_config import media_logger as logger

settings = get_settings()

# Probe returns True when the url is fetchable
Probe = Callable[[str], bool]

MEDIA_ID_PATTERN = re.compile(r"/([a-f0-9-]{36})(?:_thumbnail)?\.(?:mp4|jpg|jpeg|png|webp)(?:\?.*)?$")


@dataclass
class Candidate:
    """A rendered media form for one identifier"""
    form: MediaForm
    url: str


@dataclass
class Resolution:
    """Outcome of one resolution attempt"""
    identifier: Optional[str]
    url: Optional[str] = None
    form: Optional[MediaForm] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.url is not None


class CandidateChain:
    """Ordered candidates consumed by index; an exhausted chain stays exhausted."""

    def __init__(self, candidates: List[Candidate]):
        self._candidates = candidates
        self._index = 0
        self._tried: Set[str] = set()

    def __iter__(self) -> Iterator[Candidate]:
        while self._index < len(self._candidates):
            candidate = self._candidates[self._index]
            self._index += 1
            if candidate.url in self._tried:
                continue
            self._tried.add(candidate.url)
            yield candidate

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._candidates)


def http_probe(url: str, timeout: Optional[float] = None) -> bool:
    """HEAD the url; any network error, timeout or non-2xx status is a miss."""
    try:
        response = requests.head(
            url,
            timeout=timeout if timeout is not None else settings.media_probe_timeout,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        logger.debug("Probe failed", url=url, error_type=type(e).__name__)
        return False
    return 200 <= response.status_code < 300


class MediaResolver:
    """Sequential, first-success media url resolution with per-identifier memo."""

    def __init__(
        self,
        forms: Optional[List[MediaForm]] = None,
        probe: Optional[Probe] = None,
        base_url: Optional[str] = None,
        alt_base_url: Optional[str] = None,
    ):
        self.forms = list(forms if forms is not None else settings.media_forms)
        self.probe = probe or http_probe
        self.base_url = (base_url or settings.media_base_url).rstrip("/")
        self.alt_base_url = (alt_base_url or settings.media_alt_base_url).rstrip("/")
        self._memo: Dict[str, Resolution] = {}

    def render(self, form: MediaForm, identifier: str) -> str:
        return form.template.format(base=self.base_url, alt_base=self.alt_base_url, id=identifier)

    def candidates(self, identifier: str) -> List[Candidate]:
        return [Candidate(form=f, url=self.render(f, identifier)) for f in self.forms]

    def first_form(self, kind: str, variant: str) -> Optional[MediaForm]:
        for form in self.forms:
            if form.kind == kind and form.variant == variant:
                return form
        return None

    def _run(self, identifier: Optional[str], candidates: List[Candidate]) -> Resolution:
        resolution = Resolution(identifier=identifier)
        for candidate in CandidateChain(candidates):
            resolution.attempts.append(candidate.url)
            if self.probe(candidate.url):
                resolution.url = candidate.url
                resolution.form = candidate.form
                logger.debug(
                    "Media resolved",
                    identifier=identifier,
                    form=candidate.form.name,
                    attempts=len(resolution.attempts),
                )
                return resolution

        logger.info("Media unavailable", identifier=identifier, attempts=len(resolution.attempts))
        return resolution

    def resolve(self, identifier: str) -> Resolution:
        """Try every known form for ``identifier`` in configured order."""
        cached = self._memo.get(identifier)
        if cached is not None:
            return cached

        resolution = self._run(identifier, self.candidates(identifier))
        if resolution.available:
            self._memo[identifier] = resolution
        return resolution

    def resolve_stored(self, url: Optional[str]) -> Resolution:
        """Start from a previously stored media url, then fall back to the other forms.

        A url the host scheme does not recognise is probed on its own.
        """
        if not url:
            return Resolution(identifier=None)

        match = MEDIA_ID_PATTERN.search(url)
        if not match:
            return self._run(None, [Candidate(form=MediaForm(name="stored", template=url), url=url)])

        identifier = match.group(1)
        cached = self._memo.get(identifier)
        if cached is not None:
            return cached

        known = self.candidates(identifier)
        stored = next((c for c in known if c.url == url), None)
        if stored is None:
            stored = Candidate(form=MediaForm(name="stored", template=url), url=url)
        ordered = [stored] + [c for c in known if c.url != url]

        resolution = self._run(identifier, ordered)
        if resolution.available:
            self._memo[identifier] = resolution
        return resolution

    def media_refs(self, identifier: str, resolution: Optional[Resolution] = None) -> Dict[str, Optional[str]]:
        """Video and image refs to store for a post.

        Without a resolution (check bypassed) the animated pair is assumed.
        """
        kind = resolution.form.kind if resolution and resolution.form else "animated"
        if kind == "static":
            return {"media_video_ref": None, "media_image_ref": resolution.url}

        video = self.first_form("animated", "full")
        poster = self.first_form("animated", "poster")
        return {
            "media_video_ref": self.render(video, identifier) if video else None,
            "media_image_ref": self.render(poster, identifier) if poster else None,
        }

    def preview_url(self, post) -> Optional[str]:
        """Thumbnail for the gallery, or None to render a placeholder."""
        if post.media_image_ref:
            return self.resolve_stored(post.media_image_ref).url
        return self.resolve(extract(post.url) or post.id).url
