# Copyright 2025 Hathor Labs
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import random
from logging import getLogger

from hathor.nanocontracts.exception import NCFail
from hathor.nanocontracts.types import Amount

from crowdfund_blueprints.crowdfund import CrowdfundError
from tests.nanocontracts.blueprints.crowdfund_utils import CrowdfundTestCase

logger = getLogger(__name__)


class CrowdfundInvariantsTest(CrowdfundTestCase):
    """Randomized operation sequences against a mirrored model of the ledger."""

    def setUp(self) -> None:
        super().setUp()
        self.rng = random.Random(1234)
        self._create_campaign(goal=5000, minimum=50)

        self.users = [self.gen_random_address() for _ in range(6)]
        self.expected = {user: 0 for user in self.users}
        self.expected_total = 0
        self.expected_excess = 0
        self.expected_goal = 5000
        self.expected_minimum = 50
        self.is_open = True

    def _contribute_step(self) -> None:
        user = self.rng.choice(self.users)
        amount = self.rng.randint(1, 1500)
        accepted = (
            self.is_open
            and amount > self.expected_minimum
            and self.expected_total + amount <= self.expected_goal
        )
        try:
            self._contribute(user, amount)
        except CrowdfundError:
            self.assertFalse(accepted, f"contribution of {amount} should pass")
            return
        self.assertTrue(accepted, f"contribution of {amount} should fail")
        self.expected[user] += amount
        self.expected_total += amount

    def _release_step(self, method: str) -> None:
        user = self.rng.choice(self.users)
        balance = self.expected[user]
        if balance == 0 or balance > self.expected_total:
            # Nothing the contract could pay out for this user
            return

        if method == "refund":
            accepted = self.expected_total <= self.expected_goal
        else:
            accepted = self.is_open

        try:
            released = self._withdraw(user, method, balance)
        except CrowdfundError:
            self.assertFalse(accepted, f"{method} should pass")
            return
        self.assertTrue(accepted, f"{method} should fail")
        self.assertEqual(released, balance)
        self.expected[user] = 0
        self.expected_total -= balance

    def _excess_step(self) -> None:
        excess = self.expected_total - self.expected_goal
        if excess <= 0:
            with self.assertRaises(NCFail):
                self._withdraw(self.owner_address, "withdraw_excess", 1)
            return
        self.assertEqual(self._withdraw(self.owner_address, "withdraw_excess", excess), excess)
        self.expected_total = self.expected_goal
        self.expected_excess += excess

    def _owner_step(self) -> None:
        choice = self.rng.choice(["goal", "minimum", "open", "close"])
        if choice == "goal":
            self.expected_goal = self.rng.randint(1000, 6000)
            self._call_owner("set_goal", Amount(self.expected_goal))
        elif choice == "minimum":
            self.expected_minimum = self.rng.randint(1, 300)
            self._call_owner("set_minimum_contribution", Amount(self.expected_minimum))
        elif choice == "open":
            self._call_owner("open_campaign")
            self.is_open = True
        else:
            self._call_owner("close_campaign")
            self.is_open = False

    def _check_invariants(self) -> None:
        info = self._view("get_campaign_info")
        self.assertGreater(info.goal, 0)
        self.assertGreater(info.minimum_contribution, 0)
        self.assertEqual(info.goal, self.expected_goal)
        self.assertEqual(info.total_contributed, self.expected_total)
        self.assertEqual(info.excess_withdrawn, self.expected_excess)
        for user, balance in self.expected.items():
            self.assertEqual(self._balance_of(user), balance)
        self._check_conservation(self.users)
        self._check_contract_balances()

    def test_random_operation_sequence(self):
        steps = 300
        for step in range(steps):
            action = self.rng.choice(
                [
                    "contribute",
                    "contribute",
                    "contribute",
                    "refund",
                    "reset_contribution",
                    "withdraw_contribution",
                    "withdraw_excess",
                    "owner",
                ]
            )
            if action == "contribute":
                self._contribute_step()
            elif action == "withdraw_excess":
                self._excess_step()
            elif action == "owner":
                self._owner_step()
            else:
                self._release_step(action)

            if step % 25 == 0:
                self._check_invariants()

        logger.info("final state %s", self._view("get_campaign_info"))
        self._check_invariants()

    def test_goal_ceiling_under_pressure(self):
        """Many contributors racing for the last units never overshoot the goal."""
        for _ in range(60):
            user = self.rng.choice(self.users)
            amount = self.rng.randint(51, 400)
            try:
                self._contribute(user, amount)
                self.expected[user] += amount
                self.expected_total += amount
            except CrowdfundError:
                pass
            self.assertLessEqual(self._view("get_total_contributed"), self.expected_goal)

        self._check_invariants()
