"""YAML loader for aggregation requests.

saved reports live as yaml next to the data they pivot - human readable,
diff friendly, and comments are handy for explaining odd filters.

a request file is either flat:

    dimensions: [{column_name: country}]
    values: [{column: amount, agg_type: sum}]
    filters: [{column_name: status, filter_type: "=", values: [completed]}]

or a config tree under `tree:` which gets reduced. either form may carry
`time_range:` and `page:`.
"""

from pathlib import Path
from typing import Any

import structlog
import yaml

from aggforge.models.config import AggConfig, ConfigGroup, TimeRange, reduce_tree
from aggforge.models.page import PageQuery

logger = structlog.get_logger(__name__)


def _with_kind(node: dict[str, Any]) -> dict[str, Any]:
    """Fill in the `kind` tag so hand-written yaml can leave it out.

    pydantic's discriminated unions need the tag to be present in the input.
    """
    node = dict(node)
    if "kind" not in node:
        if "children" in node or "type" in node:
            node["kind"] = "group"
        elif "column" in node:
            node["kind"] = "value"
        else:
            node["kind"] = "dimension"
    if node["kind"] == "group":
        node["children"] = [_with_kind(c) for c in node.get("children", [])]
    return node


def parse_request(data: dict[str, Any]) -> tuple[AggConfig, PageQuery | None]:
    """Build an AggConfig (and optional page) from already-parsed yaml/json."""
    time_range = TimeRange.model_validate(data["time_range"]) if data.get("time_range") else None
    page = PageQuery.model_validate(data["page"]) if data.get("page") else None

    if "tree" in data:
        root = ConfigGroup.model_validate(_with_kind(data["tree"]))
        return reduce_tree(root, time_range), page

    config = AggConfig.model_validate(
        {
            "dimensions": data.get("dimensions", []),
            "values": data.get("values", []),
            "filters": [_with_kind(f) for f in data.get("filters", [])],
            "time_range": time_range,
        }
    )
    return config, page


def load_request(path: str | Path) -> tuple[AggConfig, PageQuery | None]:
    """Load a request from a YAML (or JSON - it's valid yaml) file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Request file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Request file {path} must contain a mapping")

    config, page = parse_request(data)
    logger.debug(
        "request_loaded",
        path=str(path),
        dimensions=len(config.dimensions),
        values=len(config.values),
        filters=len(config.filters),
    )
    return config, page
