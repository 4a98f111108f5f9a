"""GraphQL documents used to introspect a served module."""

# Module metadata: name, description and dependencies of a module source.
LOAD_MOD_CONF_QUERY = """
query ModuleConfig($source: ModuleSourceID!) {
  source: loadModuleSourceFromID(id: $source) {
    asString
    module: asModule {
      name
      initialize {
        description
      }
      dependencies {
        name
        description
        source {
          asString
          pin
        }
      }
    }
  }
}
"""

# Every type definition in the session. Nested type references only carry
# their names; the loader resolves them against the returned definitions.
LOAD_TYPE_DEFS_QUERY = """
query TypeDefs {
  typeDefs: currentTypeDefs {
    kind
    optional
    asObject {
      name
      description
      sourceModuleName
      constructor {
        ...FunctionParts
      }
      functions {
        ...FunctionParts
      }
      fields {
        ...FieldParts
      }
    }
    asScalar {
      name
      description
    }
    asInterface {
      name
      description
      sourceModuleName
      functions {
        ...FunctionParts
      }
    }
    asEnum {
      name
      description
      values {
        name
        description
      }
    }
    asInput {
      name
      description
      fields {
        ...FieldParts
      }
    }
  }
}

fragment TypeDefRefParts on TypeDef {
  kind
  optional
  asObject {
    name
  }
  asInterface {
    name
  }
  asInput {
    name
  }
  asScalar {
    name
  }
  asEnum {
    name
  }
  asList {
    elementTypeDef {
      kind
      asObject {
        name
      }
      asInterface {
        name
      }
      asInput {
        name
      }
      asScalar {
        name
      }
      asEnum {
        name
      }
    }
  }
}

fragment FunctionParts on Function {
  name
  description
  returnType {
    ...TypeDefRefParts
  }
  args {
    name
    description
    defaultValue
    defaultPath
    ignore
    typeDef {
      ...TypeDefRefParts
    }
  }
}

fragment FieldParts on FieldTypeDef {
  name
  description
  typeDef {
    ...TypeDefRefParts
  }
}
"""
