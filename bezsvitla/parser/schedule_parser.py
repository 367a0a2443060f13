"""
HTML parsing for bezsvitla.com.ua queue and city pages.

Queue pages list intervals as <li> items holding an "HH:MM–HH:MM" range and
an icon class telling whether the power is on or off. Markup changes between
site versions, so state detection goes through a replaceable StateClassifier
and a loose fallback picks up bare time ranges when no <li> item matches.
"""

import argparse
import asyncio
import json
import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from svitlo.records import Queue
from svitlo.schedule import PowerState, ScheduleBlock, normalize_block

logger = logging.getLogger(__name__)

BASE_URL = "https://bezsvitla.com.ua"

LI_PATTERN = re.compile(r"<li[^>]*>([\s\S]*?)</li>", re.IGNORECASE)
RANGE_PATTERN = re.compile(r"(\d{2}:\d{2})\s*[–-]\s*(\d{2}:\d{2})")
QUEUE_HREF_PATTERN = re.compile(r'href="([^"]*/cherha-[^"]+)"')

# Consecutive identical ranges closer than this are one node rendered twice
DUPLICATE_DISTANCE = 300


@dataclass(frozen=True)
class StateClassifier:
    """
    Maps markup around a time range to a power state.

    Markers inside the fragment win; otherwise the nearest marker within
    `window` characters around the fragment is used.
    """
    positive: Tuple[str, ...] = ("icon-on", "power-on", "light-on", "status-on")
    negative: Tuple[str, ...] = ("icon-off", "power-off", "light-off", "status-off")
    window: int = 200

    def _nearest(self, text: str, anchor: int) -> Optional[Tuple[int, PowerState]]:
        best = None
        for markers, state in ((self.positive, PowerState.ON), (self.negative, PowerState.OFF)):
            for marker in markers:
                pos = text.find(marker)
                while pos != -1:
                    distance = abs(pos - anchor)
                    if best is None or distance < best[0]:
                        best = (distance, state)
                    pos = text.find(marker, pos + 1)
        return best

    def classify(self, html: str, start: int, end: int, anchor: int) -> PowerState:
        """
        Args:
            html: whole document
            start, end: fragment bounds in html
            anchor: position of the time range in html
        """
        found = self._nearest(html[start:end], anchor - start)
        if found:
            return found[1]

        lo = max(0, start - self.window)
        hi = min(len(html), end + self.window)
        found = self._nearest(html[lo:hi], anchor - lo)
        return found[1] if found else PowerState.UNKNOWN


DEFAULT_CLASSIFIER = StateClassifier()


@dataclass(frozen=True)
class RawRange:
    start: str
    end: str
    state: PowerState
    position: int


def extract_structured(html: str, classifier: StateClassifier = DEFAULT_CLASSIFIER) -> List[RawRange]:
    """<li> fragments holding exactly one time range, with their state."""
    found = []
    for li in LI_PATTERN.finditer(html):
        fragment = li.group(0)
        pairs = list(RANGE_PATTERN.finditer(fragment))
        if len(pairs) != 1:
            continue
        pair = pairs[0]
        anchor = li.start() + pair.start()
        state = classifier.classify(html, li.start(), li.end(), anchor)
        found.append(RawRange(pair.group(1), pair.group(2), state, anchor))
    return found


def extract_loose(html: str) -> List[RawRange]:
    """Every time range in document order, state unknown."""
    return [
        RawRange(m.group(1), m.group(2), PowerState.UNKNOWN, m.start())
        for m in RANGE_PATTERN.finditer(html)
    ]


def dedupe_near(ranges: List[RawRange], distance: int = DUPLICATE_DISTANCE) -> List[RawRange]:
    """
    Drops a range repeating the previous match within `distance` characters.
    Chains collapse too: each match is compared with its predecessor, kept or not.
    """
    out: List[RawRange] = []
    previous = None
    for item in ranges:
        if previous is not None:
            same = (previous.start, previous.end, previous.state) == (item.start, item.end, item.state)
            if same and item.position - previous.position < distance:
                previous = item
                continue
        out.append(item)
        previous = item
    return out


def _valid_time(label: str, is_end: bool = False) -> bool:
    # "24:00" only closes a day
    if is_end and label == "24:00":
        return True
    hours, minutes = label.split(":")
    return int(hours) < 24 and int(minutes) < 60


def parse_schedule_html(html: str, classifier: StateClassifier = DEFAULT_CLASSIFIER) -> List[ScheduleBlock]:
    """
    Parses a queue page into normalized blocks in source order.
    Returns an empty list when the page has no recognizable ranges.
    """
    ranges = extract_structured(html, classifier)
    strategy = "structured"
    if not ranges:
        # Responsive layouts repeat bare ranges, structured items are unique
        ranges = dedupe_near(extract_loose(html))
        strategy = "loose"

    blocks = [
        normalize_block(r.start, r.end, r.state)
        for r in ranges
        if _valid_time(r.start) and _valid_time(r.end, is_end=True)
    ]
    logger.debug(f"Parsed {len(blocks)} block(s) using {strategy} strategy")
    return blocks


def parse_queues_from_city_html(html: str) -> List[Queue]:
    """Queue links of a city page, unique and absolute, in page order."""
    urls = []
    for match in QUEUE_HREF_PATTERN.finditer(html):
        href = match.group(1)
        url = href if href.startswith("http") else BASE_URL + href
        if url not in urls:
            urls.append(url)

    queues = []
    for url in urls:
        code = url.split("cherha-", 1)[1].strip("/").replace("-", ".")
        queues.append(Queue(name=f"Черга {code}", url=url))
    return queues


async def _load(args) -> str:
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            return f.read()
    from bezsvitla.fetcher import fetch_text
    return await fetch_text(args.url)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Bezsvitla schedule page parser')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--url', type=str, help='Queue page URL')
    source.add_argument('--file', type=str, help='Saved HTML page')
    parser.add_argument('--queues', action='store_true', help='Parse as a city page and list queues')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG)
    html = asyncio.run(_load(args))

    if args.queues:
        result = [q.model_dump() for q in parse_queues_from_city_html(html)]
    else:
        result = [
            {"start": b.start, "end": b.end, "state": b.state.value,
             "start_minute": b.start_minute, "end_minute": b.end_minute}
            for b in parse_schedule_html(html)
        ]
    print(json.dumps(result, ensure_ascii=False, indent=2))
