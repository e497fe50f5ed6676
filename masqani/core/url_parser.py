import logging
from typing import List

logger = logging.getLogger(__name__)


class URLParser:
    def parse_url_list(self, raw_value: str, name: str) -> List[str]:
        items = [v.strip() for v in raw_value.split(",") if v.strip()]

        valid_items = [v for v in items if self.is_remote_url(v)]

        if items and not valid_items:
            logger.warning("No valid URLs found in %s", name)

        return valid_items

    @staticmethod
    def is_remote_url(value: str) -> bool:
        return value.startswith("http://") or value.startswith("https://")

    @staticmethod
    def is_inline_payload(value: str) -> bool:
        return not URLParser.is_remote_url(value)


parser = URLParser()
