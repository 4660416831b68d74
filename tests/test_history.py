from fluxcode.history import Conversation


def test_messages_start_with_system_prompt_in_order():
    conversation = Conversation("be terse")
    conversation.add_user("hi")
    conversation.add_assistant("hello")
    conversation.add_user("hi")

    messages = conversation.to_messages()

    assert [(m.role, m.content) for m in messages] == [
        ("system", "be terse"),
        ("user", "hi"),
        ("assistant", "hello"),
        ("user", "hi"),
    ]


def test_error_records_are_kept_but_not_sent():
    conversation = Conversation()
    conversation.add_user("question")
    conversation.add_error("Error: provider returned status 500")

    assert len(conversation) == 2
    assert conversation.entries[-1].is_error
    assert [m.role for m in conversation.to_messages()] == ["user"]


def test_clear_keeps_system_prompt():
    conversation = Conversation("sys")
    conversation.add_user("a")
    conversation.clear()

    assert list(conversation) == []
    assert [m.role for m in conversation.to_messages()] == ["system"]
