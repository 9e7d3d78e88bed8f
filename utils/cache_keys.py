from collections.abc import Iterable, Mapping

# characters that delimit parts of a derived key
_KEY_SEPARATORS = ("\\", ",", "=")


def normalize_symbols(symbols) -> list:
    if not symbols:
        return []
    if isinstance(symbols, str):
        symbols = [symbols]
    normalized = []
    seen = set()
    for item in symbols:
        for symbol in str(item).split(",") if item is not None else []:
            value = symbol.strip().upper()
            if not value or value in seen:
                continue
            normalized.append(value)
            seen.add(value)
    return normalized


def _escape(part) -> str:
    text = str(part).strip()
    for separator in _KEY_SEPARATORS:
        text = text.replace(separator, "\\" + separator)
    return text


def _parameter_parts(parameters) -> list:
    if parameters is None:
        return []
    if isinstance(parameters, Mapping):
        return [f"{_escape(name)}={_escape(value)}" for name, value in parameters.items()]
    if isinstance(parameters, (str, bytes)) or not isinstance(parameters, Iterable):
        parameters = [parameters]
    return [_escape(item) for item in parameters]


def derive_key(request_type: str, parameters=None) -> str:
    """
    Build the cache key for one logical request.

    Parameters are stringified and sorted, so ``["MSFT", "AAPL"]`` and
    ``["AAPL", "MSFT"]`` both give ``quotes:AAPL,MSFT``. Separator characters
    inside a parameter are backslash-escaped, so ``["AAPL,MSFT"]`` gets a key
    of its own. An empty parameter set still yields a key of its own per type
    (``sectors:``).
    """
    tag = (request_type or "").strip()
    if not tag:
        raise ValueError("request_type is required to derive a cache key")
    return f"{tag}:{','.join(sorted(_parameter_parts(parameters)))}"
