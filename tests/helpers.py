def collect_system_turns(body):
    """Return the leading system turns of an upstream request body."""
    turns = []
    for message in body["messages"]:
        if message["role"] != "system":
            break
        turns.append(message)
    return turns

async def collect_fragments(agen, into=None):
    """Drain an async iterator of text fragments into a list."""
    fragments = [] if into is None else into
    async for fragment in agen:
        fragments.append(fragment)
    return fragments

def assert_error_body(response, status_code, error, **expected):
    """Assert a relay error response has the expected status and body."""
    assert response.status_code == status_code, response.text
    payload = response.json()
    assert payload["error"] == error, payload
    for key, value in expected.items():
        assert payload.get(key) == value, f"{key}: {payload.get(key)!r} != {value!r}"
    return payload
