from flask import abort, request


def json_body():
    """The request's JSON object; a missing body is {}, anything but an object is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description='Invalid input')
    return data
