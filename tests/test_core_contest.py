import pytest

from spellingbee_core import (
    NotFoundError,
    RoundWords,
    SpellingBeeContest,
    TurnTimer,
    ValidationError,
    apply_command,
)


def _words(rounds=3):
    data = {
        "Round 1": [{"word": "apple"}, {"word": "banana"}],
        "Round 2": [{"word": "cherry"}, {"word": "damson"}],
        "Round 3": [{"word": "elderberry"}],
    }
    return RoundWords.from_payload({k: v for i, (k, v) in enumerate(data.items()) if i < rounds})


@pytest.fixture
def make_contest(sink, cues):
    def _make(rounds=3, **kwargs):
        contest = SpellingBeeContest(
            words=_words(rounds), competition_name="Spring Bee", notifications=sink, cues=cues, **kwargs
        )
        return contest, sink, cues

    return _make


def _ids(contest):
    return {c.name: c.id for c in contest.roster}


def _active_names(competitors):
    return sorted(c.name for c in competitors if not c.is_eliminated)


def _play_round(contest, *winner_names):
    ids = _ids(contest)
    contest.end_spelling()
    return contest.confirm_winners({ids[n] for n in winner_names})


def test_new_contest_waits_for_registration(make_contest):
    contest, _, _ = make_contest()
    assert contest.phase == "registration"
    assert contest.current_round == 1
    assert contest.roster == []
    assert contest.champion is None


def test_register_creates_active_competitors_with_unique_ids(make_contest):
    contest, sink, _ = make_contest()
    competitors = contest.register(["Ann", "Ben", "Cid"])

    assert [c.name for c in competitors] == ["Ann", "Ben", "Cid"]
    assert len({c.id for c in competitors}) == 3
    assert all(not c.is_eliminated and not c.is_current_turn and c.score == 0 for c in competitors)
    assert contest.phase == "round_spelling"
    assert _active_names(contest.get_snapshot(1)) == ["Ann", "Ben", "Cid"]
    assert sink.messages[-1] == ("info", "Round 1 - Spelling Time!")


@pytest.mark.parametrize("names", [[], ["Ann"], ["Ann", "   "]])
def test_register_rejects_invalid_rosters_without_mutation(make_contest, names):
    contest, sink, _ = make_contest()
    with pytest.raises(ValidationError):
        contest.register(names)
    assert contest.phase == "registration"
    assert contest.roster == []
    assert sink.levels() == ["error"]


def test_register_sanitizes_names(make_contest):
    contest, _, _ = make_contest()
    competitors = contest.register(["  Ann  Lee ", "Be\x00n"])
    assert [c.name for c in competitors] == ["Ann Lee", "Ben"]


def test_register_keeps_punctuation_in_names(make_contest):
    contest, _, _ = make_contest()
    competitors = contest.register(["Anne (AJ) Smith", "Bo & Co", "O'Brien; Jr."])
    assert [c.name for c in competitors] == ["Anne (AJ) Smith", "Bo & Co", "O'Brien; Jr."]


def test_register_allows_competitors_with_the_same_name(make_contest):
    contest, _, _ = make_contest()
    competitors = contest.register(["Alex", "Alex", "alex"])
    assert [c.name for c in competitors] == ["Alex", "Alex", "alex"]
    assert len({c.id for c in competitors}) == 3
    assert _active_names(contest.get_snapshot(1)) == ["Alex", "Alex", "alex"]


def test_register_only_allowed_once_per_run(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben"])
    with pytest.raises(ValidationError) as exc:
        contest.register(["Cid", "Dee"])
    assert exc.value.kind == "invalid_phase"


def test_scenario_champion_declared_in_frontier_round(make_contest):
    contest, sink, cues = make_contest()
    contest.register(["Ann", "Ben", "Cid"])

    assert _play_round(contest, "Ann", "Ben") == "round_spelling"
    assert contest.current_round == 2

    assert _play_round(contest, "Ann") == "finished"
    assert contest.champion.name == "Ann"
    assert contest.current_round == 2
    assert cues.kinds == ["winner"]
    assert sink.messages[-1] == ("success", "Ann wins the competition!")


def test_confirm_winners_eliminates_everyone_else(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid", "Dee"])
    _play_round(contest, "Ben", "Dee")

    assert _active_names(contest.roster) == ["Ben", "Dee"]
    assert _active_names(contest.get_snapshot(1)) == ["Ben", "Dee"]
    assert contest.phase == "round_spelling"
    assert contest.frontier_round == 2


def test_confirm_empty_winner_set_is_rejected(make_contest):
    contest, sink, _ = make_contest()
    contest.register(["Ann", "Ben"])
    contest.end_spelling()

    with pytest.raises(ValidationError) as exc:
        contest.confirm_winners(set())
    assert exc.value.kind == "no_winners"
    assert contest.phase == "round_review"
    assert _active_names(contest.roster) == ["Ann", "Ben"]
    assert sink.messages[-1] == ("error", "Please select at least one competitor to advance.")


def test_confirm_unknown_or_eliminated_winner_is_rejected(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid"])
    ids = _ids(contest)
    _play_round(contest, "Ann", "Ben")
    contest.end_spelling()

    with pytest.raises(ValidationError):
        contest.confirm_winners({"nobody"})
    with pytest.raises(ValidationError) as exc:
        contest.confirm_winners({ids["Ann"], ids["Cid"]})
    assert exc.value.kind == "eliminated_competitor"
    assert _active_names(contest.roster) == ["Ann", "Ben"]
    assert contest.current_round == 2


def test_confirm_winners_requires_review_phase(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben"])
    with pytest.raises(ValidationError):
        contest.confirm_winners(set(_ids(contest).values()))


def test_check_spelling_is_case_and_whitespace_insensitive(make_contest):
    contest, _, cues = make_contest()
    contest.register(["Ann", "Ben"])

    verdict = contest.check_spelling(1, "Apple ")
    assert verdict.correct is True
    assert verdict.expected == "apple"

    verdict = contest.check_spelling(1, "appel")
    assert verdict.correct is False
    assert contest.last_verdict == verdict
    assert cues.kinds == ["correct", "incorrect"]


def test_check_spelling_rejects_out_of_range_word_number(make_contest):
    contest, sink, _ = make_contest()
    contest.register(["Ann", "Ben"])
    for number in (0, 3):
        with pytest.raises(ValidationError) as exc:
            contest.check_spelling(number, "apple")
        assert exc.value.kind == "invalid_word_number"
    assert contest.last_verdict is None
    assert sink.levels()[-1] == "error"


def test_check_spelling_records_and_clears_speller(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben"])
    ids = _ids(contest)
    contest.select_speller(ids["Ben"])
    assert contest.selected_speller.name == "Ben"

    verdict = contest.check_spelling(2, "banana")
    assert verdict.speller_id == ids["Ben"]
    assert contest.selected_speller is None


def test_select_speller_moves_turn_flag_and_rejects_eliminated(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid"])
    ids = _ids(contest)
    contest.select_speller(ids["Ann"])
    contest.select_speller(ids["Cid"])
    assert [c.name for c in contest.roster if c.is_current_turn] == ["Cid"]

    _play_round(contest, "Ann", "Ben")
    with pytest.raises(ValidationError) as exc:
        contest.select_speller(ids["Cid"])
    assert exc.value.kind == "eliminated_competitor"
    assert contest.selected_speller is None


def test_previous_round_at_round_one_only_notifies(make_contest):
    contest, sink, _ = make_contest()
    contest.register(["Ann", "Ben"])
    assert contest.previous_round() is False
    assert contest.current_round == 1
    assert contest.phase == "round_spelling"
    assert sink.messages[-1] == ("info", "Already at the first round!")


def test_scenario_review_patches_past_round_without_advancing(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid", "Dee"])
    ids = _ids(contest)
    _play_round(contest, "Ann", "Ben", "Cid")
    _play_round(contest, "Ann", "Ben")
    assert contest.current_round == 3

    assert contest.previous_round() is True
    assert contest.current_round == 2
    assert contest.phase == "round_review"
    assert contest.reviewing is True
    assert _active_names(contest.roster) == ["Ann", "Ben"]

    contest.confirm_winners({ids["Ann"], ids["Cid"]})

    assert _active_names(contest.get_snapshot(2)) == ["Ann", "Cid"]
    assert contest.phase == "round_spelling"
    assert contest.current_round == 2
    assert contest.frontier_round == 3
    with pytest.raises(NotFoundError):
        contest.get_snapshot(3)


def test_review_with_single_winner_does_not_finish(make_contest):
    contest, _, cues = make_contest()
    contest.register(["Ann", "Ben", "Cid"])
    ids = _ids(contest)
    _play_round(contest, "Ann", "Ben")
    contest.previous_round()

    contest.confirm_winners({ids["Ann"]})
    assert contest.phase == "round_spelling"
    assert contest.champion is None
    assert cues.kinds == []


def test_next_round_returns_to_frontier_with_patched_roster(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid", "Dee"])
    ids = _ids(contest)
    _play_round(contest, "Ann", "Ben", "Cid")
    _play_round(contest, "Ann", "Ben")
    contest.previous_round()
    contest.confirm_winners({ids["Ann"], ids["Cid"]})

    assert contest.next_round() is True
    assert contest.phase == "round_review"
    assert contest.current_round == 2

    assert contest.next_round() is True
    assert contest.current_round == 3
    assert contest.phase == "round_spelling"
    assert contest.reviewing is False
    assert _active_names(contest.roster) == ["Ann", "Cid"]


def test_next_round_steps_through_stored_snapshots(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid", "Dee"])
    _play_round(contest, "Ann", "Ben", "Cid")
    _play_round(contest, "Ann", "Ben")
    contest.previous_round()
    contest.previous_round()
    assert contest.current_round == 1
    assert _active_names(contest.roster) == ["Ann", "Ben", "Cid"]

    contest.next_round()
    assert contest.current_round == 2
    assert contest.phase == "round_review"
    assert _active_names(contest.roster) == ["Ann", "Ben"]


def test_next_round_at_frontier_requires_confirmation(make_contest):
    contest, sink, _ = make_contest()
    contest.register(["Ann", "Ben"])

    assert contest.next_round() is True
    assert contest.phase == "round_review"

    assert contest.next_round() is False
    assert contest.phase == "round_review"
    assert contest.current_round == 1
    assert sink.messages[-1] == ("error", "Please confirm winners for Round 1 first.")


def test_rounds_past_last_authored_round_go_straight_to_review(make_contest):
    contest, sink, _ = make_contest(rounds=1)
    contest.register(["Ann", "Ben", "Cid"])
    _play_round(contest, "Ann", "Ben")

    assert contest.current_round == 2
    assert contest.phase == "round_review"
    assert ("info", "All rounds completed! Select the winners for Round 2.") in sink.messages
    with pytest.raises(ValidationError):
        contest.check_spelling(1, "apple")

    contest.confirm_winners({_ids(contest)["Ben"]})
    assert contest.phase == "finished"
    assert contest.champion.name == "Ben"


def test_snapshots_are_isolated_from_live_roster(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid"])
    ids = _ids(contest)

    copy = contest.get_snapshot(1)
    copy[0].is_eliminated = True
    contest.select_speller(ids["Ann"])

    stored = contest.get_snapshot(1)
    assert all(not c.is_eliminated and not c.is_current_turn for c in stored)


def test_previous_round_not_allowed_after_finish(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben"])
    _play_round(contest, "Ann")
    with pytest.raises(ValidationError):
        contest.previous_round()
    assert contest.phase == "finished"


def test_reset_returns_to_registration_and_keeps_words(make_contest):
    contest, _, _ = make_contest()
    contest.register(["Ann", "Ben", "Cid"])
    _play_round(contest, "Ann", "Ben")

    contest.reset()
    assert contest.phase == "registration"
    assert contest.current_round == 1
    assert contest.roster == []
    assert contest.words.last_round == 3
    with pytest.raises(NotFoundError):
        contest.get_snapshot(1)


@pytest.mark.asyncio
async def test_start_turn_requires_selected_speller(make_contest, clock):
    contest, _, _ = make_contest(timer=TurnTimer(5, sleep=clock.sleep))
    contest.register(["Ann", "Ben"])
    with pytest.raises(ValidationError) as exc:
        contest.start_turn()
    assert exc.value.kind == "no_speller"
    assert contest.timer.state == "idle"


@pytest.mark.asyncio
async def test_new_turn_cancels_previous_countdown(make_contest, clock):
    contest, _, _ = make_contest(timer=TurnTimer(5, sleep=clock.sleep))
    contest.register(["Ann", "Ben"])
    ids = _ids(contest)

    contest.select_speller(ids["Ann"])
    contest.start_turn()
    await clock.advance(2)
    assert contest.timer.remaining_seconds == 3

    contest.select_speller(ids["Ben"])
    contest.start_turn()
    await clock.advance(1)
    assert contest.timer.remaining_seconds == 4
    assert clock.pending == 1

    contest.check_spelling(1, "apple")
    assert contest.timer.state == "stopped"
    assert clock.pending == 0


@pytest.mark.asyncio
async def test_time_up_notifies_organizer(make_contest, clock):
    contest, sink, _ = make_contest(timer=TurnTimer(2, sleep=clock.sleep))
    contest.register(["Ann", "Ben"])
    contest.select_speller(_ids(contest)["Ann"])
    contest.start_turn()

    await clock.advance(2)
    assert contest.timer.state == "expired"
    assert sink.messages[-1] == ("error", "Time's up for Ann!")


@pytest.mark.asyncio
async def test_time_up_names_competitor_whose_turn_started(make_contest, clock):
    contest, sink, _ = make_contest(timer=TurnTimer(2, sleep=clock.sleep))
    contest.register(["Ann", "Ben"])
    ids = _ids(contest)
    contest.select_speller(ids["Ann"])
    contest.start_turn()
    contest.select_speller(ids["Ben"])

    await clock.advance(2)
    assert contest.timer.state == "expired"
    assert sink.messages[-1] == ("error", "Time's up for Ann!")
    assert contest.selected_speller.name == "Ben"


@pytest.mark.asyncio
async def test_end_spelling_and_navigation_cancel_countdown(make_contest, clock):
    contest, _, _ = make_contest(timer=TurnTimer(5, sleep=clock.sleep))
    contest.register(["Ann", "Ben", "Cid"])
    ids = _ids(contest)
    contest.select_speller(ids["Ann"])
    contest.start_turn()
    contest.end_spelling()
    assert not contest.timer.is_running

    contest.confirm_winners({ids["Ann"], ids["Ben"]})
    contest.select_speller(ids["Ben"])
    contest.start_turn()
    contest.previous_round()
    assert not contest.timer.is_running
    await clock.advance(2)
    assert contest.timer.remaining_seconds == 5


@pytest.mark.asyncio
async def test_duration_change_rejected_mid_turn(make_contest, clock):
    contest, _, _ = make_contest(timer=TurnTimer(5, sleep=clock.sleep))
    contest.register(["Ann", "Ben"])
    contest.select_speller(_ids(contest)["Ann"])
    contest.start_turn()
    with pytest.raises(ValidationError):
        contest.set_turn_duration(30)
    contest.refresh()
    contest.set_turn_duration(30)
    assert contest.timer.duration_seconds == 30
    contest.close()


def test_apply_command_full_flow(make_contest):
    contest, _, _ = make_contest()
    outcome = apply_command(contest, {"type": "REGISTER", "names": ["Ann", "Ben", "Cid"]})
    assert outcome.snapshot_required
    assert outcome.state["phase"] == "round_spelling"
    ann, ben, cid = outcome.cmd_payload["competitorIds"]

    outcome = apply_command(contest, {"type": "SELECT_SPELLER", "competitorId": ann})
    assert outcome.cmd_payload["competitorName"] == "Ann"
    assert outcome.state["selectedSpellerId"] == ann

    outcome = apply_command(contest, {"type": "CHECK_SPELLING", "wordNumber": 2, "spelling": "BANANA"})
    assert outcome.cmd_payload["verdict"]["correct"] is True
    assert outcome.state["lastVerdict"]["expected"] == "banana"

    apply_command(contest, {"type": "NEXT_ROUND"})
    outcome = apply_command(contest, {"type": "CONFIRM_WINNERS", "winnerIds": [ann, ben]})
    assert outcome.cmd_payload["phase"] == "round_spelling"
    assert outcome.state["currentRoundNumber"] == 2
    assert sorted(outcome.state["snapshots"]) == [1]

    apply_command(contest, {"type": "END_SPELLING"})
    outcome = apply_command(contest, {"type": "CONFIRM_WINNERS", "winnerIds": [ben]})
    assert outcome.cmd_payload["championId"] == ben
    assert outcome.state["phase"] == "finished"
    assert outcome.state["championId"] == ben

    outcome = apply_command(contest, {"type": "RESET"})
    assert outcome.state["phase"] == "registration"
    assert outcome.state["roster"] == []


def test_start_turn_outside_event_loop_is_rejected(make_contest):
    contest, sink, _ = make_contest()
    contest.register(["Ann", "Ben"])
    contest.select_speller(_ids(contest)["Ann"])

    with pytest.raises(ValidationError) as exc:
        contest.start_turn()
    assert exc.value.kind == "no_event_loop"
    assert contest.timer.state == "idle"
    assert sink.levels()[-1] == "error"

    with pytest.raises(ValidationError) as exc:
        apply_command(contest, {"type": "START_TURN"})
    assert exc.value.kind == "no_event_loop"
    assert not contest.timer.is_running


def test_apply_command_set_duration_accepts_preset(make_contest):
    contest, _, _ = make_contest()
    outcome = apply_command(contest, {"type": "SET_DURATION", "timerPreset": "1:30"})
    assert outcome.cmd_payload["durationSeconds"] == 90
    assert outcome.state["timer"]["durationSeconds"] == 90


def test_apply_command_navigation_reports_no_change(make_contest):
    contest, _, _ = make_contest()
    apply_command(contest, {"type": "REGISTER", "names": ["Ann", "Ben"]})
    outcome = apply_command(contest, {"type": "PREVIOUS_ROUND"})
    assert outcome.snapshot_required is False
    outcome = apply_command(contest, {"type": "STOP_TURN"})
    assert outcome.snapshot_required is False


@pytest.mark.parametrize(
    "cmd",
    [
        {"type": "DANCE"},
        {"type": "REGISTER"},
        {"type": "CHECK_SPELLING", "wordNumber": 1},
        {"type": "CONFIRM_WINNERS"},
        {"type": "SET_DURATION", "timerPreset": "abc"},
        {"type": "CONFIRM_WINNERS", "winnerIds": [""]},
    ],
)
def test_apply_command_rejects_malformed_commands(make_contest, cmd):
    contest, _, _ = make_contest()
    with pytest.raises(ValidationError) as exc:
        apply_command(contest, cmd)
    assert exc.value.kind == "invalid_command"
    assert contest.phase == "registration"
