"""
Filename-to-species matching.

A photo's species is inferred from its name and the directories it sits in
(below the scan root). Every name is normalized (see patterns.py) and the
following tiers are tried in order; the first tier that produces a hit
decides:

1. LATIN_EXACT      the component, minus noise tokens, is a binomial
2. COMMON_EXACT     the component, minus noise tokens, is a common name
3. SUBSTRING        the component contains a binomial or common name as a
                    contiguous token sequence (or raw substring for names in
                    unspaced scripts such as Chinese)
4. COMMON_KEYWORD   a token equals the last word of exactly one multi-word
                    common name ("blackbird" -> "Eurasian Blackbird")
5. GENUS            a genus token plus the epithet of one species in it; a
                    genus token with no resolvable epithet is Unmatched

Each tier is applied to the file name and to every parent directory, and
the hits of all components are pooled. If the pooled hits name more than one
species the tier is ambiguous and resolves to Unmatched rather than an
arbitrary pick, even when the file name and a folder disagree.

The matcher holds only read-only indexes built from the taxonomy table, so
one instance is shared by all workers of a scan.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from bird_atlas.config import DEFAULT_NOISE_TOKENS
from bird_atlas.models.enums import MatchRule
from bird_atlas.models.scan import DiscoveredFile, MatchResult
from bird_atlas.scanner.patterns import (
    has_unspaced_script,
    normalize_file_name,
    normalize_name,
    strip_noise,
    tokenize,
)

if TYPE_CHECKING:
    from bird_atlas.taxonomy.table import TaxonomyTable

logger = logging.getLogger(__name__)

# A tier returns None for "no hit", or the species it points at. An empty
# tuple is a hit that names no species (genus without epithet).
Candidates = Optional[Tuple[str, ...]]


@dataclass(frozen=True)
class _Component:
    """One normalized path component (file name or directory name)."""
    text: str
    tokens: Tuple[str, ...]
    meaningful: Tuple[str, ...]

    @classmethod
    def from_normalized(cls, text: str, noise_tokens: Iterable[str]) -> "_Component":
        tokens = tokenize(text)
        return cls(text=text, tokens=tokens, meaningful=strip_noise(tokens, noise_tokens))


@dataclass(frozen=True)
class MatchDecision:
    """
    How a match was decided.

    Attributes:
        result: The MatchResult handed to the rest of the pipeline
        rule: The tier that decided, NONE if nothing matched
        component: The nearest normalized component with a hit in the deciding tier
        candidates: Species pointed at by every component hit in that tier
    """
    result: MatchResult
    rule: MatchRule
    component: Optional[str] = None
    candidates: Tuple[str, ...] = ()

    @property
    def ambiguous(self) -> bool:
        return len(self.candidates) > 1


class SpeciesMatcher:
    """
    Resolves photo file names to species in a TaxonomyTable.

    Example:
        >>> matcher = SpeciesMatcher(table)
        >>> matcher.match_name("IMG_Turdus_merula_001.jpg")
        MatchResult(latin_name='Turdus merula')
    """

    def __init__(
        self,
        table: "TaxonomyTable",
        noise_tokens: Iterable[str] = DEFAULT_NOISE_TOKENS,
        min_keyword_length: int = 4,
    ):
        self.table = table
        self.noise_tokens = frozenset(normalize_name(token) for token in noise_tokens)
        self.min_keyword_length = min_keyword_length

        # first token -> [(phrase tokens, latin)] for the substring tier
        self._phrases: Dict[str, List[Tuple[Tuple[str, ...], str]]] = {}
        # first character -> [(name, latin)] for names in unspaced scripts
        self._unspaced: Dict[str, List[Tuple[str, str]]] = {}
        # last word of a multi-word common name -> latins using it
        self._keywords: Dict[str, Tuple[str, ...]] = {}

        self._build_indexes()

        self._tiers: Sequence[Tuple[MatchRule, Callable[[_Component], Candidates]]] = (
            (MatchRule.LATIN_EXACT, self._latin_exact),
            (MatchRule.COMMON_EXACT, self._common_exact),
            (MatchRule.SUBSTRING, self._substring),
            (MatchRule.COMMON_KEYWORD, self._common_keyword),
            (MatchRule.GENUS, self._genus),
        )

    def _build_indexes(self) -> None:
        keywords: Dict[str, List[str]] = {}

        for entry in self.table.entries:
            names = [entry.latin_name] + list(entry.all_common_names)
            seen: Set[str] = set()
            for position, name in enumerate(names):
                normalized = normalize_name(name)
                if not normalized or normalized in seen:
                    continue
                seen.add(normalized)

                if has_unspaced_script(normalized) and " " not in normalized:
                    self._unspaced.setdefault(normalized[0], []).append(
                        (normalized, entry.latin_name)
                    )
                    continue

                tokens = tokenize(normalized)
                self._phrases.setdefault(tokens[0], []).append((tokens, entry.latin_name))

                if position > 0 and len(tokens) >= 2:
                    head = tokens[-1]
                    if len(head) >= self.min_keyword_length and head not in self.noise_tokens:
                        owners = keywords.setdefault(head, [])
                        if entry.latin_name not in owners:
                            owners.append(entry.latin_name)

        self._keywords = {head: tuple(owners) for head, owners in keywords.items()}

    def match(self, file: DiscoveredFile) -> MatchResult:
        """Resolve a discovered file to a species, or Unmatched."""
        return self.explain(file).result

    def match_name(self, file_name: str, ancestors: Sequence[str] = ()) -> MatchResult:
        """Resolve a bare file name (and optional parent directory names, nearest first)."""
        return self.explain_name(file_name, ancestors).result

    def explain(self, file: DiscoveredFile) -> MatchDecision:
        """Like match(), but report which tier decided and why."""
        return self.explain_name(file.file_name, file.ancestor_names())

    def explain_name(self, file_name: str, ancestors: Sequence[str] = ()) -> MatchDecision:
        components = [_Component.from_normalized(normalize_file_name(file_name), self.noise_tokens)]
        components.extend(
            _Component.from_normalized(normalize_name(name), self.noise_tokens)
            for name in ancestors
        )
        components = [component for component in components if component.tokens]

        for rule, tier in self._tiers:
            hits = [(component, tier(component)) for component in components]
            hits = [(component, candidates) for component, candidates in hits if candidates is not None]
            if not hits:
                continue
            # Every component with a hit in this tier votes; disagreement is a tie
            candidates = _distinct(latin for _, found in hits for latin in found)
            decision = self._decide(rule, hits[0][0], candidates)
            logger.debug(
                "%s -> %s via %s on '%s'",
                file_name, decision.result, rule.label,
                "', '".join(component.text for component, _ in hits),
            )
            return decision

        logger.debug("%s -> unmatched, no tier applied", file_name)
        return MatchDecision(result=MatchResult.unmatched(), rule=MatchRule.NONE)

    @staticmethod
    def _decide(rule: MatchRule, component: _Component, candidates: Tuple[str, ...]) -> MatchDecision:
        if len(candidates) == 1:
            result = MatchResult.matched(candidates[0])
        else:
            result = MatchResult.unmatched()
        return MatchDecision(
            result=result, rule=rule, component=component.text, candidates=candidates
        )

    def _latin_exact(self, component: _Component) -> Candidates:
        entry = self.table.by_latin.get(" ".join(component.meaningful))
        return (entry.latin_name,) if entry else None

    def _common_exact(self, component: _Component) -> Candidates:
        return self.table.by_common.get(" ".join(component.meaningful))

    def _substring(self, component: _Component) -> Candidates:
        hits: List[Tuple[int, int, str]] = []
        tokens = component.tokens
        for start, token in enumerate(tokens):
            for phrase, latin in self._phrases.get(token, ()):
                end = start + len(phrase)
                if tokens[start:end] == phrase:
                    hits.append((start, end, latin))

        # A name nested inside a longer matched name is not a separate hit
        spans = [
            (start, end, latin) for start, end, latin in hits
            if not any(
                other_start <= start and end <= other_end and (other_end - other_start) > (end - start)
                for other_start, other_end, _ in hits
            )
        ]
        latins = _distinct(latin for _, _, latin in spans)

        unspaced = self._unspaced_hits(component.text)
        latins = _distinct(list(latins) + list(unspaced))
        return latins or None

    def _unspaced_hits(self, text: str) -> Tuple[str, ...]:
        if not self._unspaced or not has_unspaced_script(text):
            return ()
        found: List[Tuple[str, str]] = []
        for index, char in enumerate(text):
            for name, latin in self._unspaced.get(char, ()):
                if text.startswith(name, index):
                    found.append((name, latin))
        names = [name for name, _ in found]
        kept = [
            latin for name, latin in found
            if not any(name != other and name in other for other in names)
        ]
        return _distinct(kept)

    def _common_keyword(self, component: _Component) -> Candidates:
        owners: List[str] = []
        for token in component.meaningful:
            owners.extend(self._keywords.get(token, ()))
        latins = _distinct(owners)
        return latins or None

    def _genus(self, component: _Component) -> Candidates:
        counts: Dict[str, int] = {}
        for token in component.meaningful:
            counts[token] = counts.get(token, 0) + 1
        genus_seen = False
        resolved: List[str] = []
        for token in component.meaningful:
            members = self.table.by_genus.get(token)
            if not members:
                continue
            genus_seen = True
            for entry in members:
                epithet = normalize_name(entry.epithet)
                # a tautonym like "Pica pica" needs the word twice
                needed = 2 if epithet == token else 1
                if counts.get(epithet, 0) >= needed:
                    resolved.append(entry.latin_name)
        if not genus_seen:
            return None
        return _distinct(resolved)


def _distinct(values: Iterable[str]) -> Tuple[str, ...]:
    """Unique values in first-seen order."""
    return tuple(dict.fromkeys(values))
