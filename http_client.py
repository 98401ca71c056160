# http_client.py
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests


class HttpError(Exception):
    """Server answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"{status_code}: {body}")
        self.status_code = status_code
        self.body = body


@dataclass
class HttpClient:
    timeout: float = 15.0
    session: requests.Session = field(default_factory=requests.Session)

    def _check(self, r: requests.Response, ok=range(200, 227)):
        if r.status_code not in ok:
            raise HttpError(r.status_code, r.text)

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        r = self.session.get(url, params=params, timeout=self.timeout)
        self._check(r, ok=(200,))
        return r.json()

    def post_json(self, url: str, payload: Any, headers: Optional[Dict[str, Any]] = None) -> Any:
        hdrs = {"Content-Type": "application/json"}
        for k, v in (headers or {}).items():
            hdrs[k] = str(v)
        r = self.session.post(url, json=payload, headers=hdrs, timeout=self.timeout)
        self._check(r)
        return r.json()

    def post_data(self, url: str, data: str, headers: Optional[Dict[str, Any]] = None) -> str:
        r = self.session.post(url, data=data.encode("utf-8"), headers=headers, timeout=self.timeout)
        self._check(r)
        return r.text

    def close(self):
        self.session.close()
