from fastapi import Request


def get_client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first[:64]
    client = request.client
    return str(client.host if client else "unknown")[:64]
