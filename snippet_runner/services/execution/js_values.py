"""
Python stand-ins for JavaScript values captured by the JS sandbox.

Logged objects cross the process boundary as a node table and are rebuilt
here with their identity (shared references and cycles) intact, so the
safe serializer sees the same object graph the snippet logged.
"""

from typing import Any, Dict, List, Optional


class JsUndefined:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "JS_UNDEFINED"

    def __str__(self):
        return "undefined"


JS_UNDEFINED = JsUndefined()


class JsAmbient:
    """A large host singleton (global object, document) that is never dumped"""

    def __init__(self, name: str, text: str):
        self.name = name
        self.text = text

    def __repr__(self):
        return f"JsAmbient({self.name!r})"

    def __str__(self):
        return self.text


JS_GLOBAL = JsAmbient("window", "[object global]")
JS_DOCUMENT = JsAmbient("document", "[object HTMLDocument]")


class JsObject(dict):
    """Plain JS object; str() gives the JS string coercion"""

    def __init__(self, text: str = "[object Object]"):
        super().__init__()
        self.text = text

    def __str__(self):
        return self.text


class JsArray(list):
    def __init__(self, text: str = ""):
        super().__init__()
        self.text = text

    def __str__(self):
        return self.text


class _JsScalar:
    def __init__(self, text: str):
        self.text = text

    def __repr__(self):
        return f"{type(self).__name__}({self.text!r})"

    def __str__(self):
        return self.text

    def __eq__(self, other):
        return type(other) is type(self) and other.text == self.text

    def __hash__(self):
        return hash((type(self).__name__, self.text))


class JsFunction(_JsScalar):
    pass


class JsSymbol(_JsScalar):
    pass


class JsBigInt(_JsScalar):
    pass


class JsElement:
    """DOM element captured by its outer markup"""

    def __init__(self, outer_html: str):
        self.outer_html = outer_html

    def __str__(self):
        return self.outer_html


class JsUnreadable:
    """An object whose properties threw while being captured"""

    def __init__(self, message: str, text: str):
        self.message = message
        self.text = text

    def __str__(self):
        return self.text


def decode_value(encoded: Dict[str, Any]) -> Any:
    """
    Rebuild one logged value from the sandbox wire format.

    The wire format is ``{"root": <ref>, "nodes": [...]}`` where a ref is
    either an inline scalar (``{"t": "num", "v": 1}``) or ``{"t": "ref",
    "id": n}`` pointing into ``nodes``. Containers are created empty on
    first reference and filled from a work list, so nesting depth is not
    limited by the Python stack.
    """
    nodes: List[Dict[str, Any]] = encoded.get("nodes") or []
    built: Dict[int, Any] = {}
    unfilled: List[int] = []

    def resolve(ref: Optional[Dict[str, Any]]) -> Any:
        if not isinstance(ref, dict):
            return JS_UNDEFINED
        tag = ref.get("t")
        if tag == "ref":
            return shell(ref["id"])
        if tag in ("str", "num", "bool"):
            return ref.get("v")
        if tag == "null":
            return None
        if tag == "function":
            return JsFunction(ref.get("v", ""))
        if tag == "symbol":
            return JsSymbol(ref.get("v", ""))
        if tag == "bigint":
            return JsBigInt(ref.get("v", ""))
        return JS_UNDEFINED

    def shell(node_id: int) -> Any:
        if node_id in built:
            return built[node_id]
        node = nodes[node_id]
        tag = node.get("t")
        text = node.get("text", "")

        if tag == "object":
            value = JsObject(text)
            unfilled.append(node_id)
        elif tag == "array":
            value = JsArray(text)
            unfilled.append(node_id)
        elif tag == "global":
            value = JS_DOCUMENT if node.get("name") == "document" else JS_GLOBAL
        elif tag == "element":
            value = JsElement(node.get("html", ""))
        elif tag == "json":
            # toJSON() results replace the object itself
            built[node_id] = None
            value = resolve(node.get("value"))
        else:
            value = JsUnreadable(node.get("message", ""), text)
        built[node_id] = value
        return value

    root = resolve(encoded.get("root"))
    while unfilled:
        node_id = unfilled.pop()
        node = nodes[node_id]
        value = built[node_id]
        if isinstance(value, JsObject):
            for key, item in node.get("entries", []):
                value[key] = resolve(item)
        else:
            value.extend(resolve(item) for item in node.get("items", []))
    return root
