"""Website descriptor (``website.json``) building."""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

from pushpackage.failures import DescriptorEncodingError
from pushpackage.packs.website import WebsitePushConfiguration


def canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class WebsiteDescriptor:
    document: dict[str, Any]
    content: bytes

    @property
    def authentication_token(self) -> str:
        return self.document["authenticationToken"]


class WebsiteDescriptorBuilder:
    """Builds the descriptor Safari reads when the user allows notifications."""

    def build(
        self, config: WebsitePushConfiguration, authentication_token: str
    ) -> WebsiteDescriptor:
        document = {
            "websiteName": config.website_name,
            "websitePushID": config.website_push_id,
            "allowedDomains": list(config.allowed_domains),
            "urlFormatString": config.url_format_string,
            "authenticationToken": authentication_token,
            "webServiceURL": config.web_service_url,
        }
        try:
            content = canonical_json(document).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise DescriptorEncodingError(
                f"Can not encode website descriptor for {config.website_push_id}: {exc}"
            ) from exc
        return WebsiteDescriptor(document=document, content=content)
