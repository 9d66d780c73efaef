"""
Shared fixtures for retrieval tests.
"""

from __future__ import annotations

from typing import Dict, List

import pytest

from src.catalog.models import Catalog


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _chapters(title: str, count: int, topics: Dict[int, List[str]] | None = None) -> List[dict]:
    topics = topics or {}
    return [
        {
            "number": n,
            "title": f"Chapter {n}",
            "tref": f"{title} {n}",
            "topics": topics.get(n, []),
        }
        for n in range(1, count + 1)
    ]


@pytest.fixture
def small_catalog() -> Catalog:
    return Catalog.model_validate(
        {
            "author": {"name": "Test Author"},
            "default_works": ["book_of_ways", "on_providence"],
            "works": [
                {
                    "key": "book_of_ways",
                    "title": "Book of Ways",
                    "alternative_titles": ["Sefer Derakhim"],
                    "structure": "complex_parts",
                    "keywords": ["divine", "soul"],
                    "parts": [
                        {
                            "number": 1,
                            "title": "Part One",
                            "chapters": [
                                {"title": "On the Creator", "tref": "Book of Ways, Part One, On the Creator", "topics": ["creator"]},
                                {"title": "On Purpose", "tref": "Book of Ways, Part One, On Purpose", "topics": ["purpose"]},
                                {"title": "On Mankind", "tref": "Book of Ways, Part One, On Mankind", "topics": ["free will"]},
                            ],
                        },
                        {
                            "number": 2,
                            "title": "Part Two",
                            "chapters": [
                                {"title": "On Angels", "tref": "Book of Ways, Part Two, On Angels", "topics": ["angels"]},
                                {"title": "On Israel", "tref": "Book of Ways, Part Two, On Israel", "topics": ["israel"]},
                            ],
                        },
                        {
                            "number": 3,
                            "title": "Part Three",
                            "chapters": [
                                {"title": "On Prophecy", "tref": "Book of Ways, Part Three, On Prophecy", "topics": ["prophecy"]},
                            ],
                        },
                    ],
                },
                {
                    "key": "on_providence",
                    "title": "On Providence",
                    "structure": "simple_chapters",
                    "keywords": ["providence"],
                    "chapters": _chapters(
                        "On Providence",
                        10,
                        {
                            1: ["providence"],
                            4: ["reward"],
                            5: ["punishment", "reward"],
                            10: ["redemption"],
                        },
                    ),
                },
                {
                    "key": "short_essay",
                    "title": "Short Essay",
                    "structure": "continuous",
                    "keywords": ["wisdom"],
                    "tref": "Short Essay 1",
                },
            ],
        }
    )
