from __future__ import annotations

import unittest

from conversation import state_machine
from conversation.router import ConversationRouter
from core.enums import Command, ConversationState, EventKind


class StateMachineTest(unittest.TestCase):
    def test_every_state_and_event_kind_has_an_action(self) -> None:
        for state in ConversationState:
            for kind in state_machine.ANSWER_EVENT_KINDS:
                action = state_machine.action_for(state, kind)
                self.assertTrue(
                    hasattr(ConversationRouter, f"_{action}"),
                    f"missing handler for {state.value}/{kind.value}: {action}",
                )

    def test_every_command_has_a_handler(self) -> None:
        for command in Command.ALL:
            action = state_machine.command_action_for(command)
            self.assertNotEqual(action, state_machine.UNRECOGNIZED_COMMAND_ACTION)
            self.assertTrue(hasattr(ConversationRouter, f"_{action}"))
        self.assertEqual(
            state_machine.command_action_for("/nope"),
            state_machine.UNRECOGNIZED_COMMAND_ACTION,
        )

    def test_text_answers_route_to_answer_handlers(self) -> None:
        self.assertEqual(
            state_machine.action_for(ConversationState.ASK_NUMBER, EventKind.TEXT),
            "answer_number",
        )
        self.assertEqual(
            state_machine.action_for(ConversationState.WAIT_UPLOAD_FILE, EventKind.ATTACHMENT),
            "answer_upload",
        )
        self.assertEqual(
            state_machine.action_for(ConversationState.WAIT_UPLOAD_FILE, EventKind.TEXT),
            "reprompt_upload",
        )

    def test_answers_only_follow_declared_edges(self) -> None:
        can = state_machine.can_transition
        self.assertTrue(can(ConversationState.ASK_NUMBER, ConversationState.ASK_MESSAGE))
        self.assertTrue(can(ConversationState.ASK_MESSAGE, ConversationState.NONE))
        self.assertTrue(can(ConversationState.ASK_PIN, ConversationState.ASK_PIN))
        self.assertFalse(can(ConversationState.NONE, ConversationState.ASK_MESSAGE))
        self.assertFalse(can(ConversationState.ASK_MESSAGE, ConversationState.ASK_PIN))


if __name__ == "__main__":
    unittest.main()
