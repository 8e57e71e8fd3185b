from pgtablewatch import models


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def create_notify_function(trigger: models.TriggerId) -> str:
    """
    Function that emits the changed row on the trigger's channel. Updates
    carry the old row as `previous`; deletes report the removed row as
    `record`.
    """
    name = quote_ident(trigger.channel)

    if trigger.operation == "update":
        payload = "'previous', row_to_json(OLD),\n        'record', row_to_json(NEW)"
    elif trigger.operation == "delete":
        payload = "'record', row_to_json(OLD)"
    else:
        payload = "'record', row_to_json(NEW)"

    # A BEFORE DELETE trigger returning NULL would skip the delete.
    returning = "OLD" if trigger.operation == "delete" else "NEW"

    return f"""
CREATE OR REPLACE FUNCTION {name}() RETURNS TRIGGER AS $$
  BEGIN
    PERFORM pg_notify(
      {quote_literal(trigger.channel)},
      json_build_object(
        {payload}
      )::text);
    RETURN {returning};
  END;
  $$ LANGUAGE plpgsql;
"""


def create_trigger(trigger: models.TriggerId) -> str:
    name = quote_ident(trigger.channel)
    return f"""
CREATE TRIGGER {name}
  {trigger.timing.upper()} {trigger.operation.upper()} ON {quote_ident(trigger.table)}
  FOR EACH ROW EXECUTE FUNCTION {name}();
"""


def drop_trigger(trigger: models.TriggerId) -> str:
    return (
        f"DROP TRIGGER IF EXISTS {quote_ident(trigger.channel)} "
        f"ON {quote_ident(trigger.table)};"
    )


def drop_function(trigger: models.TriggerId) -> str:
    return f"DROP FUNCTION IF EXISTS {quote_ident(trigger.channel)}();"


def create_statements(trigger: models.TriggerId) -> list[str]:
    return [create_notify_function(trigger), create_trigger(trigger)]


def drop_statements(trigger: models.TriggerId) -> list[str]:
    return [drop_trigger(trigger), drop_function(trigger)]


def trigger_exists() -> str:
    return """
SELECT EXISTS (
  SELECT 1 FROM pg_trigger WHERE tgname = $1 AND NOT tgisinternal
)
"""


def function_exists() -> str:
    return """
SELECT EXISTS (
  SELECT 1 FROM pg_proc WHERE proname = $1
)
"""
