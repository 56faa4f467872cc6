# gqlauth/schema.py
"""
GraphQL SDL of the bundled server, exported as a Python string named type_defs.
Fields and types marked with @auth are guarded; `requires` names the role the
caller needs (ADMIN when omitted).
"""

type_defs = """
directive @auth(requires: Role = ADMIN) on OBJECT | FIELD_DEFINITION

enum Role {
  ADMIN
  USER
}

type Message {
  title: String!
  public: String!
  private: String @auth
}

type User @auth(requires: USER) {
  id: ID!
  name: String!
}

type Query {
  ping: String!
  add(x: Int, y: Int): Int @auth(requires: ADMIN)
  subtract(x: Int, y: Int): Int
  messages: [Message!]!
  me: User
}
"""
