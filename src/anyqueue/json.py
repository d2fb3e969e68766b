''' Wrapper module to select the most performant available library to handle
    the equivalent of :func:`json.loads` and :func:`json.dumps`.
'''

# orjson is preferred when it is installed; the standard library is always
# available as a fallback. Message bodies are text on every supported
# backend, so unlike orjson, :func:`dumps` here always returns a string.

orjson = None
json = None

try:
    import orjson
except ImportError:
    import json


if orjson is not None:
    def dumps(value):
        return orjson.dumps(value).decode()

    loads = orjson.loads
    DecodeError = orjson.JSONDecodeError
else:
    def dumps(value):
        return json.dumps(value, separators=(',', ':'))

    loads = json.loads
    DecodeError = json.JSONDecodeError

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
