from ariadne import QueryType

query = QueryType()

messages = [
    {"title": "one", "public": "public one", "private": "private one"},
    {"title": "two", "public": "public two", "private": "private two"},
]

@query.field("ping")
def resolve_ping(_, info):
    return "pong"

@query.field("add")
async def resolve_add(_, info, x=0, y=0):
    return x + y

@query.field("subtract")
async def resolve_subtract(_, info, x=0, y=0):
    return x - y

@query.field("messages")
async def resolve_messages(_, info):
    return messages

@query.field("me")
def resolve_me(_, info):
    auth = info.context.get("auth") or {}
    if not auth.get("identity"):
        return None
    return {"id": auth.get("sub") or auth["identity"], "name": auth["identity"]}
