"""Default grading topics and semantic rules.

These mirror the rule set the pipeline was tuned with (medicinal
phytochemical research).  Callers can supply their own lists; nothing
in the pipeline depends on these particular values.
"""

from typing import List

from ..core.models import RulePolarity, SemanticRule

DEFAULT_GRADING_TOPICS: List[str] = [
    "Carotenoids", "phytochemicals", "Phytonutrient", "Biologically Active", "ALKALOIDS", "TCM",
    "polyphenols", "plant extracts", "dose-dependent", "synergistic", "phenolic acids", "coumarins",
    "stilbenes", "Terpenoids", "Terpenes", "Glucosinolates", "Organosulfur", "Phytosterols",
    "Saponins", "flavonoids", "Homology modeling", "Herbs", "herbal compounds",
]

# Used by the oracle prompt when no topics are configured
FALLBACK_TOPICS: List[str] = ["Phytochemicals", "Herbal Medicine", "Natural Extracts"]

_REQ = RulePolarity.REQUIREMENT
_PEN = RulePolarity.PENALTY

DEFAULT_SEMANTIC_RULES: List[SemanticRule] = [
    SemanticRule(id="1", polarity=_REQ, tag="phytochemicals",
                 text="The paper is a research paper on killing infective agents of humans using phytochemicals."),
    SemanticRule(id="2", polarity=_PEN, tag="The-paper",
                 text="The paper is primarily a review or meta-analysis"),
    SemanticRule(id="3", polarity=_PEN, tag="The-paper",
                 text="The paper is primarily about the biology of an organism."),
    SemanticRule(id="4", polarity=_PEN, tag="The-paper",
                 text="The paper is primarily about the physical location of an organism"),
    SemanticRule(id="5", polarity=_REQ, tag="phytochemicals",
                 text="The content focuses on a medical study testing the efficacy of a compound to treat an aliment."),
    SemanticRule(id="6", polarity=_REQ, tag="phytochemicals",
                 text="The content focuses on a study testing efficacy of phytochemicals against an organism."),
    SemanticRule(id="7", polarity=_PEN, tag="This-content",
                 text="This content is related to things outside of health and medicine."),
    SemanticRule(id="8", polarity=_PEN, tag="This-content",
                 text="This content is an analysis of medical advise and medical guidelines for doctors."),
    SemanticRule(id="9", polarity=_PEN, tag="This-content",
                 text="This content analyzes the decision making process."),
    SemanticRule(id="10", polarity=_PEN, tag="This-content",
                 text="This content discussed the logic of medical diagnosis and unnecessary therapy."),
    SemanticRule(id="11", polarity=_PEN, tag="This-content",
                 text="This content is an analysis and overview for doctors."),
    SemanticRule(id="12", polarity=_REQ, tag="phytochemicals",
                 text="This paper details a research investigation seeking a cure."),
    SemanticRule(id="13", polarity=_REQ, tag="phytochemicals",
                 text="This content contains herbal or herbal compounds being tested for the medicinal value."),
    SemanticRule(id="14", polarity=_PEN, tag="This-content",
                 text="This content does not contains herbal or herbal compounds being tested for the medicinal value."),
    SemanticRule(id="15", polarity=_PEN, tag="This-content",
                 text="This content does not explore the medicinal value of herbal or herbal compounds."),
    SemanticRule(id="16", polarity=_REQ, tag="phytochemicals",
                 text="This content does explore the medicinal value of herbal or herbal compounds."),
    SemanticRule(id="17", polarity=_REQ, tag="phytochemicals",
                 text=(
                     "This contens discusses Carotenoids OR Plant-Derived OR herbal extracts OR phytochemicals OR "
                     "Bioactive OR Phytonutrient OR Biologically Active OR Compounds OR ALKALOIDS OR TCM OR "
                     "polyphenols OR plant extracts OR dose-dependent OR receptors OR synergistic OR phenolic acids "
                     "OR coumarins OR stilbenes OR Terpenoids OR Terpenes OR Glucosinolates OR Organosulfur OR "
                     "Phytosterols OR Saponins OR flavonoids"
                 )),
    SemanticRule(id="18", polarity=_PEN, tag="The",
                 text="The content discusses x-rays or radiation therapy or chemotherapy or radiation sickness"),
]
