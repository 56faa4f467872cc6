from flask import Flask, request, jsonify
from flask_cors import CORS
from ariadne import make_executable_schema
from ariadne.explorer import ExplorerGraphiQL
from .schema import type_defs
from .routes import query
from .permissions import auth_context, apply_policy
from .settings import AUTH_DIRECTIVE, FILTER_SCHEMA
from .service import GraphQLService
from .plugin import register_auth, AuthRegistration
from .errors import AuthError
from .auth.policy import TYPE_POLICY, directive_arguments, extract_policy
from .filtering.prune import prune_schema

__all__ = [
    "AuthError",
    "AuthRegistration",
    "GraphQLService",
    "TYPE_POLICY",
    "create_app",
    "create_service",
    "directive_arguments",
    "extract_policy",
    "prune_schema",
    "register_auth",
]

def create_service(filter_schema: bool = FILTER_SCHEMA) -> GraphQLService:
    schema = make_executable_schema(type_defs, [query])
    service = GraphQLService(schema)
    register_auth(
        service,
        auth_directive=AUTH_DIRECTIVE,
        auth_context=auth_context,
        apply_policy=apply_policy,
        filter_schema=filter_schema,
    )
    return service

def create_app(service: GraphQLService = None) -> Flask:
    service = service or create_service()

    app = Flask(__name__)
    CORS(app)

    @app.route("/graphql", methods=["GET"])
    def graphql_playground():
        return ExplorerGraphiQL().html(None), 200

    @app.route("/graphql", methods=["POST"])
    async def graphql_server():
        data = request.get_json()
        auth_header = request.headers.get("Authorization", "")
        token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else None

        context = {"request": request, "token": token}

        success, result = await service.execute(data, context_value=context)
        status_code = 200 if success else 400
        return jsonify(result), status_code

    return app
