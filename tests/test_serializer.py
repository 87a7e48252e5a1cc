import json

from snippet_runner.services.execution.js_values import (
    JS_DOCUMENT,
    JS_GLOBAL,
    JS_UNDEFINED,
    JsArray,
    JsBigInt,
    JsElement,
    JsFunction,
    JsObject,
    JsUnreadable,
)
from snippet_runner.services.execution.serializer import (
    CIRCULAR,
    safe_serialize,
)


def test_null_and_undefined():
    assert safe_serialize(None) == "null"
    assert safe_serialize(JS_UNDEFINED) == "undefined"


def test_ambient_singletons_use_placeholders():
    assert safe_serialize(JS_GLOBAL) == "[window object]"
    assert safe_serialize(JS_DOCUMENT) == "[document object]"


def test_nested_ambient_values_use_placeholders():
    assert safe_serialize({"win": JS_GLOBAL, "doc": [JS_DOCUMENT]}) == (
        '{\n  "win": "[window object]",\n  "doc": [\n    "[document object]"\n  ]\n}'
    )


def test_element_shows_only_opening_tag():
    element = JsElement('<div class="card"><p>child content</p></div>')
    text = safe_serialize(element)
    assert text == '<div class="card"...>'
    assert "child content" not in text


def test_object_uses_two_space_json():
    assert safe_serialize({"a": 1, "b": [True, None, "x"]}) == (
        '{\n  "a": 1,\n  "b": [\n    true,\n    null,\n    "x"\n  ]\n}'
    )


def test_empty_containers():
    assert safe_serialize({}) == "{}"
    assert safe_serialize([]) == "[]"


def test_self_reference_marks_circular_once():
    obj = JsObject()
    obj["name"] = "loop"
    obj["self"] = obj

    text = safe_serialize(obj)

    assert text.count(CIRCULAR) == 1
    assert '"self": "[Circular]"' in text


def test_each_cyclic_edge_is_marked():
    a = JsObject()
    b = JsObject()
    a["b"] = b
    a["me"] = a
    b["a"] = a

    assert safe_serialize(a).count(CIRCULAR) == 2


def test_cyclic_array():
    items = JsArray("1")
    items.append(1)
    items.append(items)
    assert safe_serialize(items) == '[\n  1,\n  "[Circular]"\n]'


def test_visited_set_does_not_leak_between_calls():
    shared = {"x": 1}
    assert CIRCULAR not in safe_serialize(shared)
    assert CIRCULAR not in safe_serialize(shared)


def test_undefined_and_functions_dropped_from_objects_nulled_in_arrays():
    obj = JsObject()
    obj["keep"] = 1
    obj["gone"] = JS_UNDEFINED
    obj["fn"] = JsFunction("function () {}")
    obj["list"] = [JS_UNDEFINED, JsFunction("() => 1"), 2]

    assert safe_serialize(obj) == (
        '{\n  "keep": 1,\n  "list": [\n    null,\n    null,\n    2\n  ]\n}'
    )


def test_non_finite_floats_become_null():
    assert safe_serialize([float("nan"), float("inf")]) == "[\n  null,\n  null\n]"


def test_bigint_falls_back_to_string_coercion():
    obj = JsObject("[object Object]")
    obj["n"] = JsBigInt("12345678901234567890")
    assert safe_serialize(obj) == "[object Object]"


def test_unreadable_member_falls_back_to_string_coercion():
    items = JsArray("a,[object Object]")
    items.append("a")
    items.append(JsUnreadable("getter exploded", "[object Object]"))
    assert safe_serialize(items) == "a,[object Object]"


def test_arbitrary_python_object_falls_back_to_str():
    class Point:
        def __str__(self):
            return "Point(1, 2)"

    assert safe_serialize(Point()) == "Point(1, 2)"


def test_never_raises_even_when_str_fails():
    class Hostile:
        def __str__(self):
            raise RuntimeError("no")

    assert safe_serialize(Hostile()) == "[Hostile]"


def test_deeply_nested_value_prints_in_full():
    deep = []
    for _ in range(1500):
        deep = [deep]

    text = safe_serialize(deep)

    assert text.count("[") == 1501
    assert text.endswith("]")


def test_long_linked_list_prints_every_node():
    head = None
    for i in range(1200):
        head = {"value": i, "next": head}

    text = safe_serialize(head)

    assert text.startswith('{\n  "value": 1199,')
    assert '"value": 0,' in text
    assert '"next": null' in text


def test_matches_json_dumps_layout():
    sample = {"a": [1, 2.5, {"b": None, "c": []}], "d": {}, "e": "x", "f": [[True]]}
    assert safe_serialize(sample) == json.dumps(sample, indent=2, ensure_ascii=False)


def test_unicode_is_kept_readable():
    assert safe_serialize({"greeting": "héllo ✓"}) == '{\n  "greeting": "héllo ✓"\n}'
