from minitable import Event, EventManager, Stop


def test_listeners_run_in_registration_order():
    manager = EventManager()
    calls = []
    manager.on("Model.beforeSave", lambda event, **data: calls.append(("first", data["entity"])))
    manager.on("Model.beforeSave", lambda event, **data: calls.append(("second", data["entity"])))

    event = manager.dispatch(Event("Model.beforeSave", None, entity="e"))

    assert calls == [("first", "e"), ("second", "e")]
    assert event.is_stopped is False


def test_stop_skips_remaining_listeners():
    manager = EventManager()
    calls = []
    manager.on("Model.beforeDelete", lambda event, **data: Stop("halt"))
    manager.on("Model.beforeDelete", lambda event, **data: calls.append("late"))

    event = manager.dispatch(Event("Model.beforeDelete"))

    assert event.is_stopped is True
    assert event.result == "halt"
    assert calls == []


def test_off_removes_listeners():
    manager = EventManager()
    listener = manager.on("Model.afterSave", lambda event, **data: Stop(False))

    manager.off("Model.afterSave", listener)

    assert manager.listeners("Model.afterSave") == []
    assert manager.dispatch(Event("Model.afterSave")).is_stopped is False


def test_attach_subscribes_lifecycle_methods():
    class Auditor:
        def __init__(self):
            self.seen = []

        def implemented_events(self):
            return {"Model.afterSave": "after_save"}

        def after_save(self, event, entity, **kwargs):
            self.seen.append(entity)

    manager = EventManager()
    auditor = Auditor()
    manager.attach(auditor)

    manager.dispatch(Event("Model.afterSave", None, entity="row", options={}))

    assert auditor.seen == ["row"]


def test_table_methods_are_listeners(engine):
    from minitable import Table

    class AuditedTable(Table):
        seen = []

        def before_save(self, event, entity, options, **kwargs):
            self.seen.append(entity.title)

    table = AuditedTable(table="articles", connection=engine)
    table.save(table.new_entity({"title": "Hello"}))

    assert AuditedTable.seen == ["Hello"]
