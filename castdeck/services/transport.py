import logging

import requests

from ..errors import TransportError

logger = logging.getLogger("CastDeck")


class UpstreamClient:
    """JSON client for the upstream dashboard API.

    Every network or HTTP failure surfaces as TransportError; callers never
    see a requests exception.
    """

    def __init__(self, base_url, *, token="", timeout=30, session=None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        self.session.headers.setdefault("User-Agent", "CastDeck/1.0")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method, path, *, params=None, json=None):
        url = self._url(path)
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}", url=url) from e

        if response.status_code >= 400:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{method} {url} returned invalid JSON", url=url) from e

    def _get_list(self, path, params=None):
        data = self._request("GET", path, params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise TransportError(f"GET {self._url(path)} did not return a list")
        return data

    def get_sources(self):
        return self._get_list("/api/sources")

    def get_live_categories(self, source_id):
        return self._get_list(f"/api/proxy/xtream/{source_id}/live_categories")

    def get_live_streams(self, source_id):
        return self._get_list(f"/api/proxy/xtream/{source_id}/live_streams")

    def get_epg(self, source_id, *, channel_ids=None, refresh=False, max_age_hours=24):
        params = {"refresh": "1"} if refresh else {"maxAge": str(int(max_age_hours))}
        data = self._request("GET", f"/api/proxy/epg/{source_id}", params=params) or {}
        if not isinstance(data, dict):
            raise TransportError(f"EPG for source {source_id} is not an object")
        channels = data.get("channels") or []
        programmes = data.get("programmes") or []
        if channel_ids is not None:
            wanted = {str(c) for c in channel_ids}
            channels = [c for c in channels if str(c.get("id")) in wanted]
            programmes = [p for p in programmes if str(p.get("channelId")) in wanted]
        return {"channels": channels, "programmes": programmes}

    def get_favorites(self, item_type=None):
        params = {"itemType": item_type} if item_type else None
        return self._get_list("/api/favorites", params=params)

    def add_favorite(self, source_id, item_id, item_type="channel"):
        self._request(
            "POST",
            "/api/favorites",
            json={"sourceId": source_id, "itemId": item_id, "itemType": item_type},
        )

    def remove_favorite(self, source_id, item_id, item_type="channel"):
        self._request(
            "DELETE",
            "/api/favorites",
            json={"sourceId": source_id, "itemId": item_id, "itemType": item_type},
        )

    def get_hidden_items(self, source_id):
        return self._get_list("/api/channels/hidden", params={"sourceId": source_id})
