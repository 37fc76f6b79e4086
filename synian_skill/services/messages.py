"""User-facing phrases. Never interpolate backend error payloads into these."""

WELCOME = "Hola, soy Alexa, intérprete de Synian. Puedes decir “modo Synian” o “activar modo Synian”."
WELCOME_REPROMPT = "¿Deseas activar el modo Synian?"

ASK_CODE = "Por favor, dime el código TOTP para activar modo Synian."
CODE_NOT_UNDERSTOOD = "No entendí el código. Por favor repítelo número por número."
CODE_REJECTED = "Clave incorrecta. Vuelve a intentarlo, por favor."
LOCKED_OUT_COOLDOWN = (
    "Clave incorrecta {attempts} veces. Por seguridad, espera {minutes} minutos "
    "antes de volver a intentarlo."
)
LOCKED_OUT_RESTART = "Clave incorrecta {attempts} veces. Por seguridad, vuelve a iniciar el modo Synian."
STILL_LOCKED = "El modo Synian está bloqueado por seguridad. Inténtalo más tarde."
ALREADY_AUTHENTICATED = "Ya estás en modo Synian. Puedes hablar conmigo directamente."
GREETING = "Autenticación verificada. Hola, te saluda Synian."
GREETING_NAMED = "Autenticación verificada. Hola {name}, te saluda Synian."

PLEASE_AUTHENTICATE = "Primero activa el modo Synian. Di “modo Synian” y tu código."
UTTERANCE_MISSING = "No te escuché bien. ¿Qué quieres decirle a Synian?"
SESSION_EXPIRED = "Tu sesión de Synian expiró. Por favor, vuelve a decir “modo Synian” para autenticarte."
NO_RESPONSE = "Synian no ha respondido."
COMMAND_SENT = "Tu comando fue enviado a Synian."
COMMAND_MISSING = "Necesito que me digas qué acción deseas que Synian ejecute."

CORE_UNAVAILABLE = "Hubo un problema al conectar con el sistema central."
STATUS_ONLINE = "Synian está en línea y listo para ayudarte."
STATUS_OFFLINE = "Synian no está disponible en este momento."

RETURNED_TO_DEFAULT = "Volviendo a modo Alexa."
GOODBYE = "Hasta luego. Puedes decir “abre modo Synian” para volver a iniciar."

HELP_DEFAULT = "Puedes decir “activa modo Synian” o “salir de modo Synian”."
HELP_AUTHENTICATED = "Estás en modo Synian. Habla con Synian o di “salir de modo Synian”."
FALLBACK = "No entendí eso. Puedes decir “modo Synian” o pedir ayuda."

GENERIC_ERROR = "Hubo un problema al procesar tu solicitud. Inténtalo nuevamente en unos segundos."
GENERIC_ERROR_REPROMPT = "¿Deseas intentar de nuevo?"
