"""Development reverse proxy: forwards ``/api/*`` to the local backend."""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlsplit

import requests
from flask import Blueprint, Response, request

from valuation_chart.core.logger import get_logger

logger = get_logger("web.proxy")

# Connection-level headers that must not be relayed by a proxy (RFC 7230 6.1).
HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
_STRIPPED_RESPONSE = HOP_BY_HOP | {"content-encoding", "content-length"}


@dataclass(frozen=True)
class ProxyConfig:
    context: str = "/api"
    target: str = "http://127.0.0.1:9222"
    change_origin: bool = True
    path_rewrite: Dict[str, str] = field(default_factory=lambda: {"^/api": ""})

    @classmethod
    def from_settings(cls, settings: dict) -> "ProxyConfig":
        keys = ("context", "target", "change_origin", "path_rewrite")
        return cls(**{k: settings[k] for k in keys if k in settings})

    @property
    def target_origin(self) -> str:
        parts = urlsplit(self.target)
        return f"{parts.scheme}://{parts.netloc}"

    def rewrite_path(self, path: str) -> str:
        for pattern, replacement in self.path_rewrite.items():
            path = re.sub(pattern, replacement, path)
        return path or "/"

    def upstream_url(self, path: str, query_string: str = "") -> str:
        url = self.target.rstrip("/") + self.rewrite_path(path)
        return f"{url}?{query_string}" if query_string else url

    def forward_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        out = {
            k: v
            for k, v in headers.items()
            if k.lower() not in HOP_BY_HOP and k.lower() != "host"
        }
        if self.change_origin:
            for k in [k for k in out if k.lower() == "origin"]:
                del out[k]
            out["Origin"] = self.target_origin
        return out


def create_proxy_blueprint(
    config: Optional[ProxyConfig] = None,
    session: Optional[requests.Session] = None,
) -> Blueprint:
    config = config or ProxyConfig()
    http = session or requests.Session()
    bp = Blueprint("dev_proxy", __name__, url_prefix=config.context)
    methods = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

    @bp.route("/", defaults={"subpath": ""}, methods=methods, strict_slashes=False)
    @bp.route("/<path:subpath>", methods=methods)
    def forward(subpath: str):
        url = config.upstream_url(request.path, request.query_string.decode("latin-1"))
        try:
            upstream = http.request(
                request.method,
                url,
                headers=config.forward_headers(dict(request.headers)),
                data=request.get_data(),
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Proxy error for {request.method} {request.path} -> {url}: {e}")
            return Response(f"Error occurred while proxying request: {e}", status=502)
        headers = [
            (k, v)
            for k, v in upstream.headers.items()
            if k.lower() not in _STRIPPED_RESPONSE
        ]
        return Response(upstream.content, status=upstream.status_code, headers=headers)

    return bp
