"""Find well-known names and terms in a transcript."""

import re

from hyperedit.schemas.media import KeywordHit, Transcript

KNOWN_KEYWORDS = [
    # Tech companies
    "anthropic", "claude", "openai", "chatgpt", "gpt", "google", "gemini", "bard",
    "microsoft", "copilot", "meta", "llama", "apple", "siri", "amazon", "alexa",
    "nvidia", "tesla", "spacex", "neuralink", "twitter",
    # Social media
    "youtube", "tiktok", "instagram", "facebook", "snapchat", "linkedin", "reddit",
    "discord", "twitch", "spotify",
    # People
    "elon musk", "sam altman", "mark zuckerberg", "sundar pichai", "satya nadella",
    "tim cook", "jensen huang", "dario amodei",
    # General tech terms
    "artificial intelligence", "machine learning", "neural network", "blockchain",
    "cryptocurrency", "bitcoin", "ethereum", "nft", "metaverse", "virtual reality",
    "augmented reality", "robotics", "automation",
    # Products
    "iphone", "android", "windows", "macbook", "playstation", "xbox", "nintendo",
    "airpods", "vision pro",
]

_NON_WORD = re.compile(r"[^a-z0-9]+")


def _normalize(token: str) -> str:
    return _NON_WORD.sub("", token.lower())


def extract_keywords(
    transcript: Transcript,
    keywords: list[str] = KNOWN_KEYWORDS,
    dedupe_window_s: float = 5.0,
) -> list[KeywordHit]:
    """Match keywords against transcript words.

    Multi-word keywords match consecutive words. A keyword seen again within
    ``dedupe_window_s`` of an earlier hit is ignored. Hits are sorted by
    timestamp.
    """
    tokens = [(_normalize(w.word), w.start) for w in transcript.words]
    tokens = [(text, start) for text, start in tokens if text]
    hits: list[KeywordHit] = []
    last_seen: dict[str, float] = {}

    for keyword in keywords:
        parts = [_normalize(p) for p in keyword.split()]
        n = len(parts)
        for i in range(len(tokens) - n + 1):
            if [text for text, _ in tokens[i:i + n]] != parts:
                continue
            timestamp = tokens[i][1]
            previous = last_seen.get(keyword)
            if previous is not None and abs(timestamp - previous) < dedupe_window_s:
                continue
            last_seen[keyword] = timestamp
            hits.append(
                KeywordHit(
                    keyword=keyword,
                    timestamp=timestamp,
                    confidence=1.0 if n == 1 else 0.9,
                )
            )

    hits.sort(key=lambda hit: hit.timestamp)
    return hits
