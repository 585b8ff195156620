"""
roblox_client.py
================
Live statistics for the studio's games from the public Roblox APIs.

* :class:`RobloxCatalogClient` wraps the two read-only endpoints we use
  (place -> universe lookup, universe -> aggregate stats).
* :func:`enrich_games` merges live stats into stored game records,
  concurrently, keeping the input order.
* :class:`StatsRefresher` keeps running totals of visits and concurrent
  players for the ``/api/get-total-*`` endpoints.

Every lookup is best-effort: failures are logged and the caller gets
``None`` / the unmodified record back.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

logger = logging.getLogger('switchgames.roblox')

_DEFAULT_TIMEOUT = 10  # seconds
_MAX_UNIVERSES_PER_CALL = 50


class RobloxCatalogClient:
    """Client for the public Roblox game catalog API."""

    PLACE_URL = "https://apis.roblox.com/universes/v1/places/{place_id}/universe"
    GAMES_URL = "https://games.roblox.com/v1/games"

    def __init__(self, timeout: int = _DEFAULT_TIMEOUT) -> None:
        self.session = requests.Session()
        self.timeout = timeout

    def resolve_universe_id(self, place_id: str) -> Optional[str]:
        """Return the universe id that owns *place_id*, or ``None``."""
        if not place_id:
            return None
        url = self.PLACE_URL.format(place_id=place_id)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            universe_id = response.json().get('universeId')
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.warning("Could not resolve universe for place %s: %s", place_id, e)
            return None
        return str(universe_id) if universe_id else None

    def get_universe_stats(self, universe_ids: Iterable[str]) -> List[Dict]:
        """Return the raw ``data`` entries for *universe_ids* (may be empty)."""
        ids = [str(u) for u in universe_ids if u]
        results: List[Dict] = []
        for start in range(0, len(ids), _MAX_UNIVERSES_PER_CALL):
            chunk = ids[start:start + _MAX_UNIVERSES_PER_CALL]
            try:
                response = self.session.get(
                    self.GAMES_URL,
                    params={'universeIds': ','.join(chunk)},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json().get('data') or []
            except (requests.RequestException, ValueError, AttributeError) as e:
                logger.warning("Could not fetch stats for universes %s: %s", chunk, e)
                continue
            results.extend(d for d in data if isinstance(d, dict))
        return results

    def get_game_stats(self, universe_id: str) -> Optional[Dict]:
        """Return the stats entry for a single universe, or ``None``."""
        data = self.get_universe_stats([universe_id])
        return data[0] if data else None


def merge_stats(game: Dict, universe_id: str, stats: Dict) -> Dict:
    """Return a copy of *game* with live catalog fields merged in."""
    root_place = stats.get('rootPlaceId')
    return {
        **game,
        'universeId': universe_id,
        'placeId': game.get('placeId') or (str(root_place) if root_place else ''),
        'name': stats.get('name') or game.get('name', ''),
        'visits': stats.get('visits', 0),
        'playing': stats.get('playing', 0),
        'likes': stats.get('favoritedCount', 0),
        'maxPlayers': stats.get('maxPlayers', 0),
        'created': stats.get('created'),
        'updated': stats.get('updated'),
    }


def enrich_game(client: RobloxCatalogClient, game: Dict) -> Dict:
    """Merge live stats into *game*; on any failure return *game* unchanged."""
    try:
        universe_id = game.get('universeId') or client.resolve_universe_id(game.get('placeId'))
        if not universe_id:
            return game
        stats = client.get_game_stats(universe_id)
        if not stats:
            return game
        return merge_stats(game, str(universe_id), stats)
    except Exception as e:
        logger.error("Failed to enrich game %s: %s", game.get('id'), e)
        return game


def enrich_games(client: RobloxCatalogClient, games: List[Dict],
                 max_workers: int = 16) -> List[Dict]:
    """Enrich every game concurrently; the result order matches *games*."""
    if not games:
        return []
    workers = max(1, min(max_workers, len(games)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda g: enrich_game(client, g), games))


def newly_resolved_ids(original: List[Dict], enriched: List[Dict]) -> Dict[str, str]:
    """Return ``{record_id: universe_id}`` for games whose id was just resolved."""
    resolved = {}
    for before, after in zip(original, enriched):
        if not before.get('universeId') and after.get('universeId') and before.get('id'):
            resolved[before['id']] = after['universeId']
    return resolved


class StatsRefresher:
    """Background thread that keeps combined visit and player counts fresh.

    Args:
        client:          Catalog client used for lookups.
        universe_source: Zero-argument callable returning the universe ids to
                         total (evaluated on every refresh).
        interval:        Seconds between refreshes.
    """

    def __init__(self, client: RobloxCatalogClient,
                 universe_source: Callable[[], Iterable[str]],
                 interval: float = 30) -> None:
        self.client = client
        self.universe_source = universe_source
        self.interval = interval
        self.current_visits = 0
        self.current_ccu = 0
        self.lock = threading.Lock()
        self._stop = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def refresh(self) -> Dict[str, Any]:
        """Fetch stats once and store the totals."""
        universe_ids = sorted({str(u) for u in self.universe_source() if u})
        visits = 0
        ccu = 0
        for entry in self.client.get_universe_stats(universe_ids):
            visits += int(entry.get('visits') or 0)
            ccu += int(entry.get('playing') or 0)
        with self.lock:
            self.current_visits = visits
            self.current_ccu = ccu
        logger.info("Updated stats - CCU: %s, Visits: %s", ccu, visits)
        return {'visits': visits, 'ccu': ccu}

    def totals(self) -> Dict[str, int]:
        with self.lock:
            return {'visits': self.current_visits, 'ccu': self.current_ccu}

    def run(self):
        while not self._stop.is_set():
            try:
                self.refresh()
            except Exception as e:
                logger.error("Error refreshing stats: %s", e)
            self._stop.wait(self.interval)

    def start(self):
        """Start refreshing in a daemon thread."""
        if self.thread and self.thread.is_alive():
            return
        self._stop.clear()
        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()
        logger.info("Stats refresher started (every %ss)", self.interval)

    def stop(self):
        self._stop.set()
        if self.thread:
            self.thread.join(timeout=5)
        logger.info("Stats refresher stopped")
