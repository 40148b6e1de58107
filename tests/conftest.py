from filter_layer.errors import ModelRequestFailure


class FakeLLM:
    """Scripted LLMClient; each queued item is returned in order, exceptions are raised."""

    def __init__(self, structured=None, text=None):
        self.structured = list(structured or [])
        self.text = list(text or [])
        self.calls = []

    def request_structured(self, system_prompt, user_prompt, schema, config):
        self.calls.append(("structured", system_prompt, user_prompt, config))
        return self._next(self.structured)

    def request_text(self, system_prompt, user_prompt, config):
        self.calls.append(("text", system_prompt, user_prompt, config))
        return self._next(self.text)

    @staticmethod
    def _next(queue):
        if not queue:
            raise ModelRequestFailure("no scripted response")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def property_filter(id, type, filterType, value, label=None, **extra):
    data = {
        "id": id,
        "type": type,
        "source_type": "properties",
        "label": label,
        "filterType": filterType,
        "value": value,
    }
    data.update(extra)
    return data
