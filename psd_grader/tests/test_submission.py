from psd_grader.submission import decode_submission_filename, split_name_token


def test_late_submission_is_decoded():
    info = decode_submission_filename("johnSmith_LATE_12345_67890_MyFile.psd")

    assert info is not None
    assert info.is_late is True
    assert info.submission_status == "late"
    assert info.user_id == "12345"
    assert info.submission_id == "67890"
    assert info.original_filename == "MyFile"
    assert info.first_name_guess == "john"
    assert info.last_name_guess == "Smith"
    assert info.display_name == "Smith - MyFile"
    assert info.checked_filename == "MyFile.psd"


def test_on_time_submission_keeps_underscores_in_original_name():
    info = decode_submission_filename("doe_4321_98765_DES222_Doe_A01.psd")

    assert info is not None
    assert info.is_late is False
    assert info.submission_status == "on_time"
    assert info.original_filename == "DES222_Doe_A01"
    assert info.first_name_guess == ""
    assert info.last_name_guess == "doe"


def test_fewer_than_five_segments_is_unrecognized():
    assert decode_submission_filename("DES222_Smith_A01.psd") is None
    assert decode_submission_filename("a_b_c_d.psd") is None


def test_non_numeric_ids_are_unrecognized():
    assert decode_submission_filename("DES222_Smith_A01_final_v2.psd") is None


def test_zip_extension_is_stripped():
    info = decode_submission_filename("janeDoe_111_222_Portfolio.zip")

    assert info is not None
    assert info.original_filename == "Portfolio"


def test_late_marker_needs_room_for_ids():
    assert decode_submission_filename("johnSmith_LATE_12345_67890.psd") is None


def test_name_token_split():
    assert split_name_token("johnSmith") == ("john", "Smith")
    assert split_name_token("maryO'Neil") == ("mary", "O'Neil")
    assert split_name_token("JohnSmith") == ("", "JohnSmith")
    assert split_name_token("smith") == ("", "smith")


def test_to_dict_contains_derived_fields():
    payload = decode_submission_filename("johnSmith_12345_67890_MyFile.psd").to_dict()

    assert payload["display_name"] == "Smith - MyFile"
    assert payload["submission_status"] == "on_time"
    assert payload["user_id"] == "12345"
