import pytest

from src.models.enums import DataSource, MatchResult, RecordShape
from src.models.records import detect_record_shape
from src.normalization.html_extractor import extract_rows
from src.normalization.normalizer import best_of_for, is_team_match, pretty_map_name
from tests.helpers import NOW, STATS_PAGE_HTML, TEAM_ID, structured_record


def test_structured_record(normalizer):
    match = normalizer.normalize(structured_record(), DataSource.API)

    assert match is not None
    assert match.id == "1-abc"
    assert match.opponent == "Rival Five"
    assert match.event == "ESEA Advanced"
    assert (match.our_score, match.opponent_score) == (2, 1)
    assert match.result == MatchResult.WIN
    assert match.date == "29.08.2025"
    assert match.date_iso.startswith("2025-08-29T14:00:00")
    assert match.date_estimated is False
    assert match.competition_id == "league-1"


def test_structured_with_map_details(normalizer):
    record = structured_record(
        voting={"map": {"pick": ["de_mirage", "de_nuke", "de_ancient"]}},
        detailed_results=[
            {"factions": {"faction1": {"score": 13}, "faction2": {"score": 9}}},
            {"factions": {"faction1": {"score": 8}, "faction2": {"score": 13}}},
            {"factions": {"faction1": {"score": 13}, "faction2": {"score": 11}}},
        ],
    )
    match = normalizer.normalize(record, DataSource.API)

    assert match.total_maps == 3
    assert match.best_of == 3
    assert match.map == "Best of 3"
    assert [result.map for result in match.map_results] == ["Mirage", "Nuke", "Ancient"]
    assert [result.win for result in match.map_results] == [True, False, True]


def test_our_side_found_on_second_faction(normalizer):
    record = structured_record(
        teams={
            "faction1": {"faction_id": "team-rival", "name": "Rival Five"},
            "faction2": {"faction_id": TEAM_ID, "name": "FORZE Reload"},
        },
    )
    match = normalizer.normalize(record, DataSource.API)

    assert (match.our_score, match.opponent_score) == (1, 2)
    assert match.result == MatchResult.LOSS


def test_tie_counts_as_loss(normalizer):
    match = normalizer.normalize(structured_record(score=(1, 1)), DataSource.API)
    assert match.result == MatchResult.LOSS
    assert not match.is_win


def test_normalize_is_idempotent(normalizer):
    raw = structured_record()
    assert normalizer.normalize(raw, DataSource.API) == normalizer.normalize(
        raw, DataSource.API
    )


def test_unparseable_date_is_flagged(normalizer):
    match = normalizer.normalize(
        structured_record(started_at="not-a-date"), DataSource.API
    )

    assert match.date_estimated is True
    assert match.date_iso == NOW.isoformat()
    assert match.date == "01.09.2025"


def test_record_without_our_team_is_skipped(normalizer):
    record = structured_record(
        teams={
            "faction1": {"faction_id": "a", "name": "A"},
            "faction2": {"faction_id": "b", "name": "B"},
        }
    )
    assert normalizer.normalize(record, DataSource.API) is None


def test_record_without_score_is_skipped(normalizer):
    assert normalizer.normalize(structured_record(results={}), DataSource.API) is None


@pytest.mark.parametrize("raw", [{"foo": 1}, None, "16-12", 42])
def test_unrecognised_input_is_skipped(normalizer, raw):
    assert normalizer.normalize(raw, DataSource.API) is None


def test_positional_record(normalizer):
    raw = {
        "_id": {"matchId": "m-77"},
        "i1": "de_inferno",
        "i18": "16 / 12",
        "i19": "Rival Five",
        "date": 1756476000000,
        "competitionName": "FACEIT League",
    }
    match = normalizer.normalize(raw, DataSource.API)

    assert match.id == "m-77"
    assert match.map == "Inferno"
    assert (match.our_score, match.opponent_score) == (16, 12)
    assert match.result == MatchResult.WIN
    assert match.event == "FACEIT League"
    # Millisecond epoch
    assert match.date == "29.08.2025"


def test_positional_explicit_scores_win_over_score_text(normalizer):
    raw = {"matchId": "m-1", "i1": "de_nuke", "i18": "1-16", "i20": "16", "i21": "5"}
    match = normalizer.normalize(raw, DataSource.API)
    assert (match.our_score, match.opponent_score) == (16, 5)


def test_group_maps_merges_series(normalizer):
    def map_record(match_id, hour, map_name, score):
        return {
            "matchId": match_id,
            "i1": map_name,
            "i18": score,
            "i19": "Rival Five",
            "competitionId": "cup-1",
            "competitionName": "Cup",
            "date": f"2025-08-20T{hour:02d}:00:00+00:00",
        }

    raws = [
        map_record("m-3", 20, "de_ancient", "13-7"),
        map_record("m-1", 18, "de_mirage", "13-10"),
        map_record("m-2", 19, "de_nuke", "9-13"),
    ]
    matches = normalizer.normalize_many(raws, DataSource.API)
    grouped = normalizer.group_maps(matches)

    assert len(grouped) == 1
    series = grouped[0]
    assert series.best_of == 3
    assert series.total_maps == 3
    assert series.map == "Best of 3"
    assert (series.our_score, series.opponent_score) == (2, 1)
    assert series.result == MatchResult.WIN
    # Ordered chronologically inside the series
    assert [result.map for result in series.map_results] == ["Mirage", "Nuke", "Ancient"]
    assert series.date_iso.startswith("2025-08-20T18")


def test_group_maps_keeps_different_opponents_apart(normalizer):
    raws = [
        {"matchId": "a", "i1": "de_nuke", "i18": "13-2", "i19": "One", "date": "2025-08-20T18:00:00"},
        {"matchId": "b", "i1": "de_nuke", "i18": "13-2", "i19": "Two", "date": "2025-08-20T19:00:00"},
    ]
    grouped = normalizer.group_maps(normalizer.normalize_many(raws, DataSource.API))
    assert [match.id for match in grouped] == ["a", "b"]
    assert all(match.best_of == 1 for match in grouped)


def test_html_rows(normalizer):
    matches = normalizer.normalize_many(extract_rows(STATS_PAGE_HTML), DataSource.HTML)

    assert len(matches) == 2
    first = matches[0]
    assert first.id == "201"
    assert first.date == "28.08.2025"
    assert first.date_iso == "2025-08-28"
    assert first.event == "CCT Europe"
    assert first.opponent == "Rival Five"
    assert first.map == "Mirage"
    assert (first.our_score, first.opponent_score) == (13, 9)
    assert first.source == DataSource.HTML
    assert matches[1].result == MatchResult.LOSS


def test_is_team_match():
    assert is_team_match(structured_record(), TEAM_ID)
    assert not is_team_match(structured_record(status="ONGOING"), TEAM_ID)
    assert not is_team_match(structured_record(finished=False), TEAM_ID)
    assert not is_team_match(structured_record(team_id="someone-else"), TEAM_ID)
    assert is_team_match(structured_record(team_id=TEAM_ID), TEAM_ID)
    assert not is_team_match({"i1": "de_nuke", "i18": "16-3"}, TEAM_ID)

    both_ours = structured_record(
        teams={
            "faction1": {"faction_id": TEAM_ID},
            "faction2": {"faction_id": TEAM_ID},
        }
    )
    assert not is_team_match(both_ours, TEAM_ID)


@pytest.mark.parametrize(
    "maps_played, expected", [(0, 1), (1, 1), (2, 3), (3, 3), (4, 5), (5, 5), (7, 7)]
)
def test_best_of_for(maps_played, expected):
    assert best_of_for(maps_played) == expected


def test_pretty_map_name():
    assert pretty_map_name("de_dust2") == "Dust2"
    assert pretty_map_name("de_mirage") == "Mirage"
    assert pretty_map_name("") == "Unknown"


def test_out_of_range_epoch_is_flagged_not_dropped(normalizer):
    raw = {"matchId": "m-9", "i1": "de_mirage", "i18": "16-12", "i19": "Rival", "date": 1e20}
    match = normalizer.normalize(raw, DataSource.API)

    assert match is not None
    assert match.date_estimated is True
    assert match.date_iso == NOW.isoformat()
    assert (match.our_score, match.opponent_score) == (16, 12)


def test_positional_record_with_started_at(normalizer):
    raw = {"i1": "de_mirage", "i18": "12-16", "i19": "Rival", "started_at": 1700000000}
    match = normalizer.normalize(raw, DataSource.API)

    assert match is not None
    assert match.opponent == "Rival"
    assert match.map == "Mirage"
    assert match.result == MatchResult.LOSS
    assert match.date == "14.11.2023"
    assert match.date_estimated is False


@pytest.mark.parametrize(
    "raw, shape",
    [
        ({"teams": {"faction1": {}, "faction2": {}}, "i1": "de_nuke"}, RecordShape.STRUCTURED),
        ({"i18": "12-16", "started_at": 1700000000, "results": {}}, RecordShape.POSITIONAL),
        ({"teams": {}, "match_id": "x"}, RecordShape.STRUCTURED),
        ({"started_at": 1700000000}, RecordShape.STRUCTURED),
        ({"match_id": "x"}, None),
    ],
)
def test_detect_record_shape(raw, shape):
    assert detect_record_shape(raw) == shape


def test_shared_match_id_groups_across_midnight(normalizer):
    raws = [
        {"_id": {"matchId": "late"}, "i1": "de_nuke", "i18": "13-5", "i19": "Rival", "date": "2025-08-20T23:10:00+00:00"},
        {"_id": {"matchId": "late"}, "i1": "de_inferno", "i18": "13-8", "i19": "Rival", "date": "2025-08-21T00:05:00+00:00"},
    ]
    grouped = normalizer.group_maps(normalizer.normalize_many(raws, DataSource.API))

    assert len(grouped) == 1
    assert grouped[0].total_maps == 2
    assert (grouped[0].our_score, grouped[0].opponent_score) == (2, 0)


def test_estimated_dates_are_not_grouped(normalizer):
    raws = [
        {"matchId": "x1", "i1": "de_nuke", "i18": "13-5", "date": "garbage"},
        {"matchId": "x2", "i1": "de_mirage", "i18": "5-13", "date": "garbage"},
    ]
    matches = normalizer.normalize_many(raws, DataSource.API)
    assert all(match.date_estimated for match in matches)

    grouped = normalizer.group_maps(matches)
    assert [match.id for match in grouped] == ["x1", "x2"]
    assert all(match.total_maps == 1 for match in grouped)
