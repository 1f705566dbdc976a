import logging
import time
from urllib.parse import parse_qs, urlparse

import bs4 as bs
import requests

from cogninode import config
from cogninode.graph import Difficulty, Resource, ResourceType

"""
Learning-resource search  (videos + articles)
---------------------------------------------
Two independent collaborators, each best-effort:

  1. YouTube Data API v3   → tutorial videos      (needs YOUTUBE_API_KEY)
  2. Serper Google search  → articles / guides    (needs SERPER_API_KEY)
     └─ falls back to the DuckDuckGo HTML results page when no key is set

Neither ever raises: any failure is logged and contributes an empty list.
"""

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
_SESSION = requests.Session()
_SESSION.headers.update({
	"User-Agent": (
		f"{config.APP_NAME}/1.0 (Learning-map builder) "
		"Python-requests"
	),
	"Accept-Language": "en-US,en;q=0.9",
})

_TIMEOUT = 15  # seconds
_RETRY_DELAY = 1.0  # seconds between retries

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
SERPER_SEARCH_URL = "https://google.serper.dev/search"
DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"

MAX_PER_SOURCE = 3
DESCRIPTION_LIMIT = 200


def _request(method: str, url: str, **kwargs) -> requests.Response | None:
	"""Send a request with one retry on transient failure or HTTP 429."""
	for attempt in range(2):
		try:
			resp = _SESSION.request(method, url, timeout=_TIMEOUT, **kwargs)
			if resp.status_code == 429:
				time.sleep(_RETRY_DELAY * (attempt + 1))
				continue
			resp.raise_for_status()
			return resp
		except requests.exceptions.RequestException as e:
			if attempt == 0:
				time.sleep(_RETRY_DELAY)
			else:
				log.warning("[search] error fetching %s: %s", url, e)
	return None


def _clean_text(text: str) -> str:
	"""Strip markup and entities that search APIs leave in titles/snippets."""
	if not text:
		return ""
	return bs.BeautifulSoup(text, "html.parser").get_text(" ", strip=True)


def _trim(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
	return text[:limit] + "..." if len(text) > limit else text


# ---------------------------------------------------------------------------
# 1. YouTube tutorial videos
# ---------------------------------------------------------------------------
def search_videos(query: str) -> list[Resource]:
	"""Top tutorial videos for *query*; [] without a key or on any failure."""
	api_key = config.youtube_api_key()
	if not api_key:
		return []
	try:
		return _search_youtube(query, api_key)
	except Exception as exc:
		log.warning("[search] video search failed for %r: %s", query, exc)
		return []


def _search_youtube(query: str, api_key: str) -> list[Resource]:
	params = {
		"part": "snippet",
		"q": f"{query} tutorial",
		"type": "video",
		"maxResults": MAX_PER_SOURCE,
		"key": api_key,
	}
	resp = _request("GET", YOUTUBE_SEARCH_URL, params=params)
	if resp is None:
		return []

	try:
		items = resp.json().get("items") or []
	except ValueError as exc:
		log.warning("[search] youtube returned invalid JSON: %s", exc)
		return []

	results: list[Resource] = []
	for item in items:
		video_id = (item.get("id") or {}).get("videoId")
		snippet = item.get("snippet") or {}
		if not video_id:
			continue
		thumb = ((snippet.get("thumbnails") or {}).get("medium") or {}).get("url")
		results.append(Resource(
			id=video_id,
			type=ResourceType.VIDEO,
			title=_clean_text(snippet.get("title", "")),
			url=f"https://www.youtube.com/watch?v={video_id}",
			description=_trim(_clean_text(snippet.get("description", ""))),
			difficulty=Difficulty.BEGINNER,
			thumbnail=thumb,
		))
	return results


# ---------------------------------------------------------------------------
# 2. Articles: Serper, or DuckDuckGo HTML when no key is configured
# ---------------------------------------------------------------------------
def _search_serper(query: str, api_key: str) -> list[Resource]:
	resp = _request(
		"POST",
		SERPER_SEARCH_URL,
		headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
		json={"q": f"{query} tutorial guide documentation", "num": MAX_PER_SOURCE},
	)
	if resp is None:
		return []
	try:
		organic = resp.json().get("organic") or []
	except ValueError as exc:
		log.warning("[search] serper returned invalid JSON: %s", exc)
		return []

	return [
		Resource(
			id=f"web-{i}",
			type=ResourceType.ARTICLE,
			title=_clean_text(item.get("title", "")),
			url=item.get("link", ""),
			description=_clean_text(item.get("snippet", "")),
			difficulty=Difficulty.INTERMEDIATE,
		)
		for i, item in enumerate(organic[:MAX_PER_SOURCE])
		if item.get("link")
	]


def _unwrap_duckduckgo(href: str) -> str:
	"""DuckDuckGo links go through /l/?uddg=<target>; return the target."""
	parsed = urlparse(href)
	target = parse_qs(parsed.query).get("uddg")
	if target:
		return target[0]
	return href if href.startswith("http") else ""


def _search_duckduckgo(query: str) -> list[Resource]:
	resp = _request("GET", DUCKDUCKGO_HTML_URL, params={"q": f"{query} tutorial guide"})
	if resp is None:
		return []
	soup = bs.BeautifulSoup(resp.text, "html.parser")

	results: list[Resource] = []
	for block in soup.select(".result"):
		link = block.select_one("a.result__a")
		if link is None:
			continue
		url = _unwrap_duckduckgo(link.get("href", ""))
		title = link.get_text(strip=True)
		if not url or len(title) < 3:
			continue
		snippet = block.select_one(".result__snippet")
		results.append(Resource(
			id=f"web-{len(results)}",
			type=ResourceType.ARTICLE,
			title=title[:120],
			url=url,
			description=snippet.get_text(" ", strip=True) if snippet else "",
			difficulty=Difficulty.INTERMEDIATE,
		))
		if len(results) >= MAX_PER_SOURCE:
			break
	return results


def search_articles(query: str) -> list[Resource]:
	"""Top articles / guides for *query*; [] on any failure."""
	api_key = config.serper_api_key()
	try:
		if api_key:
			return _search_serper(query, api_key)
		return _search_duckduckgo(query)
	except Exception as exc:
		log.warning("[search] article search failed for %r: %s", query, exc)
		return []
