from __future__ import annotations

from aisync.domain_classifier import Domain, DomainClassifier, VetoMatrix, is_manufacturing_question


def test_manufacturing_phrasing_wins_outright():
    classifier = DomainClassifier()

    result = classifier.classify("How do they make TVs?")

    assert result.domain == Domain.MANUFACTURING


def test_keyword_counts_pick_the_domain():
    classifier = DomainClassifier()

    assert classifier.classify("Which pronoun is the subject of this English verb?").domain == Domain.GRAMMAR
    assert classifier.classify("Solve this equation and calculate the number").domain == Domain.MATHEMATICS
    assert classifier.classify("What is photosynthesis?").domain == Domain.GENERAL


def test_ties_follow_enum_order():
    # one technology keyword, one science keyword
    result = DomainClassifier().classify("computer experiment")

    assert result.domain == Domain.TECHNOLOGY
    assert result.score == 1


def test_is_manufacturing_question():
    assert is_manufacturing_question("how are cars made")
    assert is_manufacturing_question("build a house in a factory")
    assert not is_manufacturing_question("what is a house")


def test_veto_matrix_is_directional_and_configurable():
    vetoes = VetoMatrix.from_names([("technology", "grammar")])

    assert vetoes.is_vetoed(Domain.TECHNOLOGY, Domain.GRAMMAR)
    assert not vetoes.is_vetoed(Domain.GRAMMAR, Domain.TECHNOLOGY)

    vetoes.add(Domain.SCIENCE, Domain.GRAMMAR)
    assert vetoes.is_vetoed(Domain.SCIENCE, Domain.GRAMMAR)
