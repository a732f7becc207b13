from typing import Any, Dict, List

# Sample data from Prabhupada's Bhagavad Gita As It Is. Loaded once into an
# empty store; never mutated at runtime.

CHAPTERS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "chapter_number": 1,
        "title": "Observing the Armies on the Battlefield of Kuruksetra",
        "description": "Arjuna's dilemma and despondency on the battlefield",
    },
    {
        "id": 2,
        "chapter_number": 2,
        "title": "Contents of the Gita Summarized",
        "description": "The eternal soul and the temporary body",
    },
]


def _gloss(pairs: str) -> List[Dict[str, str]]:
    """Split "word - meaning; word - meaning" into word_meanings entries."""
    out = []
    for item in pairs.split(";"):
        sanskrit, _, english = item.partition(" - ")
        out.append({"sanskrit": sanskrit.strip(), "english": english.strip()})
    return out


VERSES: List[Dict[str, Any]] = [
    {
        "id": 1,
        "chapter_id": 2,
        "verse_number": 47,
        "sanskrit": "कर्मण्येवाधिकारस्ते मा फलेषु कदाचन। मा कर्मफलहेतुर्भूर्मा ते सङ्गोऽस्त्वकर्मणि॥",
        "transliteration": "karmany evadhikaras te ma phalesu kadacana ma karma-phala-hetur bhur ma te sango 'stv akarmani",
        "translation": "You have a right to perform your prescribed duty, but never to the fruits of action. "
                       "Never consider yourself the cause of the results of your activities, "
                       "and never be attached to not doing your duty.",
        "purport": "There are three considerations here: prescribed duties, capricious work, and inaction. "
                   "Prescribed duties are activities enjoined in terms of one's acquired modes of material nature.",
        "word_meanings": _gloss(
            "karmani - in prescribed duties; eva - certainly; adhikarah - right; te - of you; "
            "ma - never; phalesu - in the fruits; kadacana - at any time; ma - never; "
            "karma-phala - in the result of the work; hetuh - cause; bhuh - become; ma - never; "
            "te - of you; sangah - attachment; astu - be there; akarmani - in not doing"
        ),
    },
    {
        "id": 2,
        "chapter_id": 2,
        "verse_number": 20,
        "sanskrit": "न जायते म्रियते वा कदाचिन्नायं भूत्वा भविता वा न भूयः। अजो नित्यः शाश्वतोऽयं पुराणो न हन्यते हन्यमाने शरीरे॥",
        "transliteration": "na jayate mriyate va kadacin nayam bhutva bhavita va na bhuyah "
                           "ajo nityah sasvato 'yam purano na hanyate hanyamane sarire",
        "translation": "For the soul there is neither birth nor death. It is not slain when the body is slain.",
        "purport": "Qualitatively, the small atomic fragmental part of the Supreme Spirit is one with the Supreme.",
        "word_meanings": _gloss(
            "na - never; jayate - takes birth; mriyate - dies; va - either; kadacit - at any time; "
            "na - never; ayam - this; bhutva - having come into being; bhavita - will come to be; "
            "va - or; na - not; bhuyah - or is again; ajah - unborn; nityah - eternal; "
            "sasvatah - permanent; ayam - this; puranah - the oldest; na - never; "
            "hanyate - is killed; hanyamane - being killed; sarire - the body"
        ),
    },
    {
        "id": 3,
        "chapter_id": 2,
        "verse_number": 13,
        "sanskrit": "देहिनोऽस्मिन्यथा देहे कौमारं यौवनं जरा। तथा देहान्तरप्राप्तिर्धीरस्तत्र न मुह्यति॥",
        "transliteration": "dehino 'smin yatha dehe kaumaram yauvanam jara tatha dehantara-praptir dhiras tatra na muhyati",
        "translation": "As the embodied soul continuously passes, in this body, from boyhood to youth to old age, "
                       "the soul similarly passes into another body at death. "
                       "A sober person is not bewildered by such a change.",
        "purport": "Since every living entity is an individual soul, each is changing his body every moment, "
                   "manifesting sometimes as a child, sometimes as a youth, and sometimes as an old man.",
        "word_meanings": _gloss(
            "dehinah - of the embodied; asmin - in this; yatha - as; dehe - in the body; "
            "kaumaram - boyhood; yauvanam - youth; jara - old age; tatha - similarly; "
            "deha-antara - of transference of the body; praptih - achievement; dhirah - the sober; "
            "tatra - thereupon; na - never; muhyati - is deluded"
        ),
    },
]
