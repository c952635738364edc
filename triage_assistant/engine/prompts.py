"""Fixed assistant texts and the hypothesis prompt.

Follow-up questions are a deterministic function of the stage the
interview just entered; the model never writes them.
"""

from typing import Dict

from triage_assistant.models.triage import Stage


# Question asked when the interview enters each stage
STAGE_PROMPTS: Dict[Stage, str] = {
    Stage.INITIAL: (
        "Olá! Sou o assistente clínico. Para começar, descreva com suas palavras "
        "o que você está sentindo."
    ),
    Stage.DURATION: (
        "Entendi. Há quanto tempo você está com esses sintomas? "
        "Eles começaram de repente ou aos poucos?"
    ),
    Stage.INTENSITY: (
        "Numa escala de 0 a 10, qual a intensidade do que você está sentindo? "
        "Isso atrapalha suas atividades do dia a dia?"
    ),
    Stage.QUALITY: (
        "Como você descreveria a sensação? Por exemplo: pontada, queimação, "
        "pressão, latejante ou constante."
    ),
    Stage.FACTORS: (
        "Existe algo que melhora ou piora os sintomas? Algum outro sintoma "
        "apareceu junto?"
    ),
    Stage.HISTORY: (
        "Você tem alguma doença crônica, alergia ou usa medicamentos "
        "regularmente? Já teve algo parecido antes?"
    ),
    Stage.ANALYSIS: (
        "Obrigado pelas informações. Estou analisando seus sintomas para "
        "sugerir possíveis hipóteses."
    ),
    Stage.COMPLETE: (
        "A entrevista clínica foi concluída. Se quiser relatar novos sintomas, "
        "é só me contar que começamos uma nova avaliação."
    ),
}

# Label used for each stage's answer in the symptom summary
STAGE_LABELS: Dict[Stage, str] = {
    Stage.INITIAL: "Queixa principal",
    Stage.DURATION: "Duração",
    Stage.INTENSITY: "Intensidade",
    Stage.QUALITY: "Característica",
    Stage.FACTORS: "Fatores de melhora/piora e sintomas associados",
    Stage.HISTORY: "Histórico e medicamentos",
}

SCHEDULING_RESPONSE = (
    "Posso ajudar com o agendamento. Informe o dia e o período de sua "
    "preferência (manhã ou tarde) e o tipo de consulta, e verificaremos os "
    "horários disponíveis com a equipe."
)

GENERAL_RESPONSE = (
    "Posso ajudar você a avaliar sintomas ou a agendar uma consulta. "
    "Se estiver sentindo algo, descreva o que está acontecendo."
)

EMERGENCY_ADVISORY = (
    "🚨 ATENÇÃO: pelos sintomas descritos, procure atendimento de emergência "
    "imediatamente. Ligue para o SAMU (192) ou vá ao pronto-socorro mais próximo."
)

ANALYSIS_UNAVAILABLE = (
    "Não consegui concluir a análise dos seus sintomas agora. Envie qualquer "
    "mensagem em instantes para tentarmos novamente. Se os sintomas piorarem, "
    "procure atendimento médico."
)

ANALYSIS_DISCLAIMER = (
    "Estas hipóteses não substituem uma consulta médica. Se desejar, posso "
    "ajudar a agendar um atendimento."
)

FALLBACK_RESPONSE = (
    "Desculpe, houve um erro ao processar sua mensagem. Por favor, tente novamente."
)


HYPOTHESIS_SYSTEM_PROMPT = (
    "Você é um assistente médico especializado que gera hipóteses diagnósticas "
    "baseadas nas diretrizes do Ministério da Saúde brasileiro. Seja preciso, "
    "responsável e responda apenas com JSON válido."
)

HYPOTHESIS_PROMPT = """Analise os sintomas relatados pelo paciente durante a entrevista clínica.

{summary}

Forneça até {max_hypotheses} hipóteses diagnósticas mais prováveis.
Responda com um objeto JSON contendo o campo "hypotheses": um array de objetos, cada um com:
- condition: nome da condição
- probability: probabilidade em porcentagem (0-100)
- reasoning: justificativa clínica
- ministryGuidelines: referência às diretrizes do MS quando aplicável
"""
